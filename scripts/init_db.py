# scripts/init_db.py
import asyncio

from casamatch.db import create_all


async def main() -> None:
    await create_all()
    print("OK: created all tables (idempotent).")


if __name__ == "__main__":
    asyncio.run(main())
