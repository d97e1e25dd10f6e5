"""Utility functions for formatted CLI output."""

from datetime import datetime
from typing import Any

import click


def print_header(title: str, width: int = 70, color: str = "cyan") -> None:
    """Print a formatted header."""
    click.echo()
    click.echo(click.style("=" * width, fg=color))
    click.echo(click.style(title, fg=color, bold=True))
    click.echo(click.style("=" * width, fg=color))
    click.echo()


def print_section(title: str, color: str = "yellow") -> None:
    """Print a section title."""
    click.echo(click.style(f"\n{title}:", fg=color, bold=True))


def print_key_value(
    key: str, value: Any, key_color: str = "white", value_color: str = "cyan"
) -> None:
    """Print a key-value pair."""
    click.echo(
        click.style(f"  {key}: ", fg=key_color) + click.style(str(value), fg=value_color, bold=True)
    )


def print_success(message: str) -> None:
    click.echo(click.style(f"✓ {message}", fg="green", bold=True))


def print_error(message: str) -> None:
    click.echo(click.style(f"✗ {message}", fg="red", bold=True))


def print_warning(message: str) -> None:
    click.echo(click.style(f"⚠ {message}", fg="yellow", bold=True))


def _format_duration(start_time: str, end_time: str) -> str:
    start = datetime.fromisoformat(start_time.replace("Z", "+00:00"))
    end = datetime.fromisoformat(end_time.replace("Z", "+00:00"))
    duration = (end - start).total_seconds()
    hours = int(duration // 3600)
    minutes = int((duration % 3600) // 60)
    seconds = int(duration % 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def print_summary(stats: dict[str, Any], title: str = "Archival Summary") -> None:
    """Print a formatted summary of an archival run.

    Args:
        stats: Statistics dictionary returned by ``Archiver.archive``
        title: Summary title
    """
    print_header(title)
    dry_run = stats.get("dry_run", False)

    print_section("Run")
    print_key_value("Organization", stats.get("organization_id", "-"))
    print_key_value("Mode", "dry run" if dry_run else "live")

    print_section("Collections")
    print_key_value("Processed", stats.get("collections_processed", 0))
    print_key_value("Skipped (no matches)", stats.get("collections_skipped", 0))
    print_key_value("Failed", stats.get("collections_failed", 0))

    print_section("Documents")
    print_key_value("Matched", f"{stats.get('records_matched', 0):,}")
    archived_label = "Would archive" if dry_run else "Archived and deleted"
    print_key_value(archived_label, f"{stats.get('records_archived', 0):,}")
    print_key_value("Batches", stats.get("batches_processed", 0))

    for result in stats.get("results", []):
        if result.get("status") == "success":
            continue
        print_section(f"{result['live_collection']} -> {result['archive_collection']}")
        print_key_value("Status", result["status"], value_color="red")
        print_key_value(
            "Batches committed",
            f"{result['batches_committed']}/{result['batches_total']}",
        )
        cursor = result.get("resume_cursor")
        if cursor and cursor.get("last_document_id"):
            print_key_value("Last committed document", cursor["last_document_id"])
        if result.get("error"):
            print_key_value("Error", result["error"], value_color="red")

    if stats.get("start_time") and stats.get("end_time"):
        print_section("Duration")
        print_key_value("Total Time", _format_duration(stats["start_time"], stats["end_time"]))

    click.echo()
    status = stats.get("status", "success")
    if status == "success":
        print_success("Archival completed successfully")
    elif status == "partial":
        print_warning("Archival stopped part-way; re-run to archive the remaining documents")
    else:
        print_error("Archival failed; see the log for details")
