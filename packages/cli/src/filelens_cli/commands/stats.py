"""stats command: aggregate feedback patterns across review history."""

from __future__ import annotations

from collections import Counter

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from filelens_cli.commands.history import _require_store
from filelens_cli.render import SEVERITY_STYLE
from filelens_core.models import Category, Severity

console = Console()


def _tally(items) -> tuple[Counter[Severity], Counter[Category], Counter[str]]:
    severities: Counter[Severity] = Counter()
    categories: Counter[Category] = Counter()
    files: Counter[str] = Counter()
    for item in items:
        for name, review in item.review.file_reviews.items():
            for feedback in review.feedback:
                severities[feedback.severity] += 1
                categories[feedback.category] += 1
                files[name] += 1
    return severities, categories, files


@click.command("stats")
@click.option("--top", default=10, show_default=True, help="Number of most flagged files to show.")
@click.pass_context
def stats_cmd(ctx, top: int):
    """Show aggregated statistics across stored reviews.

    Reports the severity and category distribution of all findings and the
    most frequently flagged files.
    """
    items = _require_store(ctx).load()
    if not items:
        console.print("[yellow]No review history found.[/yellow]")
        return

    severities, categories, files = _tally(items)
    findings = sum(severities.values())

    console.print("\n[bold]Review stats[/bold]")
    console.print(f"  Total reviews:  {len(items)}")
    console.print(f"  Total findings: {findings}")
    console.print(f"  Avg per review: {findings / len(items):.1f}")
    if not findings:
        return

    by_severity = Table(title="Severity Breakdown")
    by_severity.add_column("Severity", style="bold")
    by_severity.add_column("Findings", justify="right")
    by_severity.add_column("Share", justify="right")
    for severity in Severity:
        style = SEVERITY_STYLE[severity]
        n = severities[severity]
        by_severity.add_row(f"[{style}]{severity.value}[/{style}]", str(n), f"{n / findings:.0%}")
    console.print(by_severity)

    by_category = Table(title="Category Breakdown")
    by_category.add_column("Category", style="bold")
    by_category.add_column("Findings", justify="right")
    for category, n in categories.most_common():
        by_category.add_row(category.value, str(n))
    console.print(by_category)

    flagged = Table(title=f"Most Flagged Files (top {top})")
    flagged.add_column("File")
    flagged.add_column("Findings", justify="right")
    for name, n in files.most_common(top):
        flagged.add_row(escape(name), str(n))
    console.print(flagged)
