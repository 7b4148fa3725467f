"""Schema package exports."""
from .admin import OrphanedPaymentRead, PaymentRecord
from .payment import PaymentIntakeRequest, PaymentIntakeResponse, validate_payment_request
from .ticket import ScanRequest, ScanResult, TicketRead
from .webhook import ChargeMetadata, WebhookAck, WebhookPayload

__all__ = [
    "ChargeMetadata",
    "OrphanedPaymentRead",
    "PaymentIntakeRequest",
    "PaymentIntakeResponse",
    "PaymentRecord",
    "ScanRequest",
    "ScanResult",
    "TicketRead",
    "WebhookAck",
    "WebhookPayload",
    "validate_payment_request",
]
