#!/usr/bin/env python3
"""Register, list and sweep 1min.ai tokens directly in the configured store.

Useful before the proxy is running, or when the admin API is not reachable.

    python scripts/manage_tokens.py add <jwt> --note "main account"
    python scripts/manage_tokens.py list
    python scripts/manage_tokens.py sweep
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from onemin_proxy.config_loader import load_config  # noqa: E402
from onemin_proxy.core.exceptions import ProxyError  # noqa: E402
from onemin_proxy.credentials import CredentialRepository, create_store  # noqa: E402
from onemin_proxy.logging import mask_secret  # noqa: E402

logging.basicConfig(level=logging.WARNING)
logging.getLogger("onemin-proxy").setLevel(logging.WARNING)


def _format_expiry(expires_at: int | None) -> str:
    if expires_at is None:
        return "no expiry"
    return datetime.fromtimestamp(expires_at / 1000).strftime("%Y-%m-%d %H:%M:%S")


async def _run(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    store = create_store(cfg.get("database"))
    repository = CredentialRepository(store)
    try:
        if args.command == "add":
            credential = await repository.add(args.token, args.note)
            state = "disabled (already expired)" if credential.disabled else "enabled"
            print(f"Added {mask_secret(credential.secret)} - {state}")
            return 0

        if args.command == "sweep":
            count = await repository.disable_expired()
            print(f"Disabled {count} expired tokens")
            return 0

        credentials = await repository.list()
        print(f"{len(credentials)} tokens")
        for index, credential in enumerate(credentials, start=1):
            status = "disabled" if credential.disabled else "enabled"
            print(
                f"{index}. {mask_secret(credential.secret)} {credential.note or '-'} "
                f"- {status} - {_format_expiry(credential.expires_at)}"
            )
        return 0
    finally:
        store.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Manage 1min.ai tokens in the proxy's credential store")
    parser.add_argument(
        "--config",
        help="Path to the config file (default: ONEMIN_CONFIG or configs/config_default.yaml)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Register a token")
    add.add_argument("token")
    add.add_argument("--note", default="")

    sub.add_parser("list", help="List registered tokens")
    sub.add_parser("sweep", help="Disable every expired token")

    args = parser.parse_args(argv)
    try:
        return asyncio.run(_run(args))
    except ProxyError as exc:
        print(f"[ERROR] {exc.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
