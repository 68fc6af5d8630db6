"""
Database Initialization Script.
Creates the messages, analytics and handoffs tables for the SQL backend.
"""

import asyncio
import sys
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from echo_agent.config import get_settings
from echo_agent.db.database import init_db, close_db


async def main():
    """Initialize the database."""
    settings = get_settings()
    print("🗄️  Initializing database...")

    await init_db(settings)
    await close_db()

    print("✅ Database initialized successfully!")
    print(f"📁 Database URL: {settings.DATABASE_URL}")


if __name__ == "__main__":
    asyncio.run(main())
