"""
Generate thumbnails for photos uploaded without one.

Usage:
    python scripts/backfill_thumbnails.py [--dry-run]
"""
from __future__ import annotations

import argparse
import asyncio

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from coffee_chronicles.core.config import settings
from coffee_chronicles.core.database import close_db, get_db_context
from coffee_chronicles.core.logging_config import configure_logging
from coffee_chronicles.services import PhotoService, ThumbnailService, create_blob_store

console = Console()


async def backfill(dry_run: bool = False) -> dict:
    """Run the backfill and return counts for the summary."""
    stats = {"total": 0, "missing": 0, "generated": 0}

    async with get_db_context() as db:
        service = PhotoService(db, create_blob_store(), ThumbnailService())
        records = await service.repo.list_all()
        stats["total"] = len(records)
        stats["missing"] = sum(1 for r in records if not r.get("thumbnailS3Key"))

        if stats["missing"] == 0:
            console.print("\n[yellow]Every photo already has a thumbnail[/yellow]")
        elif dry_run:
            for record in records:
                if not record.get("thumbnailS3Key"):
                    console.print(f"  would generate: {record['s3Key']}")
        else:
            with console.status(f"Generating {stats['missing']} thumbnails..."):
                stats["generated"] = await service.backfill_thumbnails()

    await close_db()
    return stats


def display_summary(stats: dict) -> None:
    table = Table(title="\n[bold]Backfill Summary[/bold]")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")

    failed = stats["missing"] - stats["generated"]
    table.add_row("Total photos", str(stats["total"]))
    table.add_row("Missing thumbnails", str(stats["missing"]))
    table.add_row("Thumbnails generated", str(stats["generated"]))
    table.add_row("Errors", str(failed), style="red" if failed > 0 else "green")

    console.print(table)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Generate missing photo thumbnails")
    parser.add_argument("--dry-run", action="store_true", help="List photos without writing anything")
    args = parser.parse_args()

    configure_logging()
    console.print(Panel.fit(
        "[bold cyan]Thumbnail Backfill[/bold cyan]\n"
        f"Blob backend: {settings.blob_backend}\n"
        f"Size: {settings.thumbnail_width}x{settings.thumbnail_height}px\n"
        f"Quality: {settings.thumbnail_quality}%",
        border_style="cyan"
    ))

    stats = asyncio.run(backfill(dry_run=args.dry_run))
    if not args.dry_run:
        display_summary(stats)


if __name__ == "__main__":
    main()
