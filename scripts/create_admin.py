#!/usr/bin/env python3
from __future__ import annotations

import argparse
import getpass
import json
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from repairdesk.errors import ApiError
from repairdesk.lifecycle import Role
from repairdesk.store import create_store_from_env


def main() -> int:
    parser = argparse.ArgumentParser(description="Register an administrator account in the configured store")
    parser.add_argument("--email", required=True, help="administrator email")
    parser.add_argument("--name", default="Administrator", help="display name")
    parser.add_argument("--phone", default="", help="contact phone")
    parser.add_argument(
        "--password",
        default=os.getenv("REPAIRDESK_ADMIN_PASSWORD", ""),
        help="password; prompted when omitted and REPAIRDESK_ADMIN_PASSWORD is unset",
    )
    args = parser.parse_args()

    password = args.password or getpass.getpass("Administrator password: ")
    store = create_store_from_env()
    try:
        profile = store.register_account(
            email=args.email,
            password=password,
            name=args.name,
            phone=args.phone,
            role=Role.ADMIN,
        )
    except ApiError as exc:
        raise SystemExit(f"{exc.code}: {exc.message}") from None
    print(json.dumps({"user_id": profile["user_id"], "email": profile["email"], "role": profile["role"]}, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
