"""Bootstrap the first admin API key so /apikeys can be used."""
import argparse

from eventory.db import get_sessionmaker, init_engine
from eventory.models.api_key import ApiKey, ApiScope
from eventory.utils.apikey import gen_key


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--name", default="bootstrap-admin")
    args = parser.parse_args()

    init_engine()
    db = get_sessionmaker()()
    raw, prefix, key_hash = gen_key()
    try:
        api_key = ApiKey(
            name=args.name,
            prefix=prefix,
            key_hash=key_hash,
            scope=ApiScope.admin,
            is_active=True,
        )
        db.add(api_key)
        db.commit()
        db.refresh(api_key)

        print("Admin API key created; it will not be shown again:")
        print(f"    X-API-Key: {raw}")
        print(f"(DB id: {api_key.id}, prefix: {api_key.prefix})")
    finally:
        db.close()


if __name__ == "__main__":
    main()
