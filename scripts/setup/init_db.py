# scripts/setup/init_db.py
"""
Initialize database — creates all tables.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from platelink.database import create_tables, engine
from platelink.config import settings
from sqlalchemy import inspect, text


def main():
    print("PlateLink DB Initialization")
    print("=" * 40)
    print(f"Database: {settings.DATABASE_URL}")

    # Test connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("Database connection OK")
    except Exception as e:
        print(f"Cannot connect to database: {e}")
        print("\nCheck DATABASE_URL in .env, or start PostgreSQL:")
        print("  sudo systemctl start postgresql")
        sys.exit(1)

    # Create all tables
    print("\nCreating tables...")
    create_tables()

    tables = sorted(inspect(engine).get_table_names())
    print(f"\nTables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    print("\nDatabase ready! You can now start the backend:")
    print(f"   uvicorn platelink.main:app --host {settings.BACKEND_HOST} --port {settings.BACKEND_PORT} --reload")


if __name__ == "__main__":
    main()
