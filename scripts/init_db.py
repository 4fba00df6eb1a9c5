"""Create MongoDB indexes (unique username/email, recipe lookups).

The API also does this on startup; run it by hand after pointing
MONGODB_URI at a fresh database.
"""

import asyncio
import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from recipe_platform.config import load_config
from recipe_platform.db import open_store


async def _run() -> str:
    cfg = load_config()
    store = open_store(cfg)
    try:
        await store.ensure_indexes()
    finally:
        await store.close()
    return store.kind


def main() -> None:
    kind = asyncio.run(_run())
    print(f"DB initialized: {kind}")


if __name__ == "__main__":
    main()
