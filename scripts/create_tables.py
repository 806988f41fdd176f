"""
Create the item table used by both logical tables.

Usage:
    python scripts/create_tables.py
"""
import asyncio

from rich.console import Console

from coffee_chronicles.core.config import settings
from coffee_chronicles.core.database import close_db, init_db
from coffee_chronicles.core.logging_config import configure_logging

console = Console()


async def create_tables():
    """Create all tables registered on the ORM metadata."""
    console.print(f"Creating tables in [cyan]{settings.database_url.rsplit('@', 1)[-1]}[/cyan]...")
    try:
        await init_db()
    finally:
        await close_db()
    console.print(
        f"[green]✓[/green] Ready: {settings.coffee_dates_table}, {settings.photos_table}"
    )


def main():
    """Main entry point."""
    configure_logging()
    asyncio.run(create_tables())


if __name__ == "__main__":
    main()
