"""Test configuration."""
import os
from collections.abc import AsyncIterator, Callable, Iterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

import jwt
import pytest
from alembic import command
from alembic.config import Config
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# --- Default environment, set before the application is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///./eventory_test.db")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("SESSION_JWT_SECRET", "test-session-secret")
os.environ.setdefault("SECRET_KEY", "test-api-key-pepper")
os.environ.setdefault("YOCO_SECRET_KEY", "sk_test_yoco")
os.environ.setdefault("PROMETHEUS_ENABLED", "false")

from eventory.config import get_settings  # noqa: E402
from eventory.db import get_db  # noqa: E402
from eventory.main import app  # noqa: E402
from eventory.models import Base, Event, Ticket, TicketPaymentStatus, TicketStatus  # noqa: E402
from eventory.models.api_key import ApiKey, ApiScope  # noqa: E402
from eventory.services.processors import CHARGE_SUCCESSFUL, ChargeResult  # noqa: E402
from eventory.services.rate_limit import webhook_rate_limiter  # noqa: E402
from eventory.utils.apikey import hash_key  # noqa: E402

ROOT = Path(__file__).resolve().parents[1]
DB_PATH = Path("./eventory_test.db")


def _run_migrations() -> None:
    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.attributes["configure_logger"] = False
    cfg.attributes["sqlalchemy.url"] = os.environ["DATABASE_URL"]
    command.upgrade(cfg, "head")


# --- (1) Fresh database file for the session
if DB_PATH.exists():
    DB_PATH.unlink()

engine = create_engine(
    os.environ["DATABASE_URL"],
    connect_args={"check_same_thread": False},
    future=True,
)
TestingSessionLocal = sessionmaker(
    bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False
)

# --- (2) Build the schema through Alembic only
_run_migrations()


def _truncate_all() -> None:
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(autouse=True)
def clean_database() -> Iterator[None]:
    # Services commit on their own, so isolation is by wiping rows after each test.
    yield
    _truncate_all()


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> Iterator[None]:
    webhook_rate_limiter.reset()
    yield
    webhook_rate_limiter.reset()


@pytest.fixture
def db_session() -> Iterator[Session]:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def override_db_dependency() -> Iterator[None]:
    def _get_db() -> Iterator[Session]:
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings():
    return get_settings()


# --- Purchaser sessions


def make_session_token(user_id: str, *, expires_in: int = 3600, **claims) -> str:
    settings = get_settings()
    payload = {
        "sub": user_id,
        "aud": settings.SESSION_JWT_AUDIENCE,
        "exp": datetime.now(tz=UTC) + timedelta(seconds=expires_in),
        **claims,
    }
    return jwt.encode(payload, settings.SESSION_JWT_SECRET, algorithm="HS256")


@pytest.fixture
def session_token() -> Callable[..., str]:
    return make_session_token


@pytest.fixture
def user_id() -> str:
    return str(uuid4())


@pytest.fixture
def session_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_session_token(user_id)}"}


# --- Staff API keys


@pytest.fixture
def make_api_key(db_session: Session) -> Callable[..., ApiKey]:
    def _factory(name: str, key: str, scope: ApiScope = ApiScope.staff, is_active: bool = True) -> ApiKey:
        api_key = ApiKey(
            name=name,
            prefix="test_" + scope.value,
            key_hash=hash_key(key),
            scope=scope,
            is_active=is_active,
        )
        db_session.add(api_key)
        db_session.commit()
        db_session.refresh(api_key)
        return api_key

    return _factory


def _headers_for(make_api_key: Callable[..., ApiKey], scope: ApiScope) -> dict[str, str]:
    token = f"{scope.value}-{uuid4().hex}"
    make_api_key(name=f"{scope.value}-{uuid4().hex}", key=token, scope=scope)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def staff_headers(make_api_key: Callable[..., ApiKey]) -> dict[str, str]:
    return _headers_for(make_api_key, ApiScope.staff)


@pytest.fixture
def support_headers(make_api_key: Callable[..., ApiKey]) -> dict[str, str]:
    return _headers_for(make_api_key, ApiScope.support)


@pytest.fixture
def admin_headers(make_api_key: Callable[..., ApiKey]) -> dict[str, str]:
    return _headers_for(make_api_key, ApiScope.admin)


# --- Domain factories


@pytest.fixture
def make_event(db_session: Session) -> Callable[..., Event]:
    def _factory(
        *,
        price: str = "100.00",
        max_attendees: int = 10,
        current_attendees: int = 0,
        is_active: bool = True,
        title: str = "Launch Night",
    ) -> Event:
        event = Event(
            title=title,
            price=Decimal(price),
            max_attendees=max_attendees,
            current_attendees=current_attendees,
            is_active=is_active,
        )
        db_session.add(event)
        db_session.commit()
        return event

    return _factory


@pytest.fixture
def make_ticket(db_session: Session) -> Callable[..., Ticket]:
    def _factory(
        event: Event,
        *,
        user_id: str | None = None,
        quantity: int = 1,
        payment_reference: str | None = None,
        status: TicketStatus = TicketStatus.PENDING,
        payment_status: TicketPaymentStatus = TicketPaymentStatus.PROCESSING,
        purchaser_email: str | None = "buyer@example.com",
        purchase_date: datetime | None = None,
    ) -> Ticket:
        ticket = Ticket(
            user_id=user_id or str(uuid4()),
            event_id=event.id,
            quantity=quantity,
            total_price=event.price * quantity,
            status=status,
            payment_status=payment_status,
            payment_reference=payment_reference or f"ch_{uuid4().hex[:16]}",
            payment_method="yoco",
            purchaser_email=purchaser_email,
        )
        if purchase_date is not None:
            ticket.purchase_date = purchase_date
        db_session.add(ticket)
        db_session.commit()
        return ticket

    return _factory


# --- Charge backend fakes


class FakeProcessor:
    """Charge backend double recording every call."""

    name = "yoco"

    def __init__(self, result: ChargeResult | None = None, error: Exception | None = None) -> None:
        self.result = result or ChargeResult(ok=True, id=f"ch_{uuid4().hex[:16]}", status=CHARGE_SUCCESSFUL)
        self.error = error
        self.calls: list[dict] = []

    def create_charge(self, **kwargs) -> ChargeResult:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def fake_processor(monkeypatch) -> FakeProcessor:
    processor = FakeProcessor()
    monkeypatch.setattr(
        "eventory.services.payment_intake.get_payment_processor", lambda _settings: processor
    )
    return processor
