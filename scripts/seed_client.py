#!/usr/bin/env python3
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from crm_admin.core.config import IS_DEV  # noqa: E402
from crm_admin.core.database import SessionLocal  # noqa: E402
from crm_admin.models.client import Client, ClientType  # noqa: E402
from crm_admin.models.user import User  # noqa: E402
from crm_admin.services.passwords import hash_password  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed a client and its ADMIN user.")
    parser.add_argument("--name", required=True, help="Client name (ex: Metrosuites)")
    parser.add_argument(
        "--type",
        required=True,
        choices=[client_type.value for client_type in ClientType],
        help="Client type",
    )
    parser.add_argument(
        "--api-key",
        default=os.getenv("SEED_OMNI_GATEWAY_API_KEY", ""),
        help="OmniStack gateway API key (defaults to SEED_OMNI_GATEWAY_API_KEY)",
    )
    parser.add_argument("--admin-email", required=True, help="Admin email")
    parser.add_argument("--admin-password", required=True, help="Admin password")
    parser.add_argument("--admin-name", default="Admin", help="Admin display name")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    admin_email = args.admin_email.strip().lower()

    db = SessionLocal()
    try:
        if db.query(User).filter(User.email == admin_email).first():
            print(f"User already exists: {admin_email}")
            return 1

        client = db.query(Client).filter(Client.name == args.name).first()
        if client is None:
            client = Client(name=args.name, type=args.type, omni_gateway_api_key=args.api_key or None)
            db.add(client)
            db.flush()

        admin = User(
            client_id=client.id,
            email=admin_email,
            name=args.admin_name,
            password_hash=hash_password(args.admin_password),
            role="ADMIN",
        )
        db.add(admin)
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    print(f"Client ready: id={client.id} name={client.name} type={client.type}")
    if IS_DEV:
        print(f"DEV summary -> Client: {client.id} | Email: {admin_email}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
