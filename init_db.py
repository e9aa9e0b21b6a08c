"""
Database initialisation for the underground reader.

Run this once before first use:
1. Check database connectivity
2. Create the tables
"""
import sys

from sqlalchemy import text

from database import Database, get_database


def print_section(title):
    """Print section header."""
    print("\n" + "=" * 60)
    print(f"  {title}")
    print("=" * 60 + "\n")


def check_database(db: Database) -> bool:
    """Check database connectivity."""
    print_section("Checking Database Connection")

    try:
        with db.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        print(f"✗ Database connection failed: {e}")
        print("\nPlease check your DATABASE_URL in .env")
        return False

    print("✓ Database connection successful")
    return True


def create_tables(db: Database) -> None:
    """Create all tables that do not exist yet."""
    print_section("Creating Tables")
    db.create_all()
    print("✓ Tables ready: books, groups, contents")


def init_database(db: Database = None) -> bool:
    """Check connectivity and create the schema. Returns False if the database is unreachable."""
    db = db or get_database()
    if not check_database(db):
        return False
    create_tables(db)
    return True


def main():
    """Main setup routine."""
    print("\n" + "=" * 60)
    print("  Underground Reader - Database Setup")
    print("=" * 60)

    if not init_database():
        print("\n⚠ Setup cannot continue without database connection")
        sys.exit(1)

    print_section("Setup Complete")
    print("You can now start the server:")
    print("  python main.py")
    print("\nOr with uvicorn:")
    print("  uvicorn main:app --reload")


if __name__ == "__main__":
    main()
