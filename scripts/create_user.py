"""Register a user directly against the configured store.

Usage:
  python scripts/create_user.py --username alice --email alice@example.com --full-name 'Alice A' --password '...'

NOTE: This is intended for local/dev.
"""

import argparse
import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from recipe_platform.auth.crud import create_user
from recipe_platform.config import load_config
from recipe_platform.db import open_store
from recipe_platform.errors import ApiError


async def _run(args: argparse.Namespace) -> dict:
    cfg = load_config()
    store = open_store(cfg)
    try:
        await store.ensure_indexes()
        return await create_user(
            store,
            username=args.username,
            email=args.email,
            full_name=args.full_name,
            password=args.password,
        )
    finally:
        await store.close()


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--username", required=True)
    ap.add_argument("--email", required=True)
    ap.add_argument("--full-name", required=True)
    ap.add_argument("--password", required=True)
    args = ap.parse_args()

    try:
        u = asyncio.run(_run(args))
    except ApiError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
