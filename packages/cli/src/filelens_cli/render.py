"""Terminal rendering of batch reviews and chat replies."""

from __future__ import annotations

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from filelens_core.models import BatchCodeReview, CodeFile, ReviewFeedback, Severity
from filelens_core.reviewer import count_severities

SEVERITY_STYLE = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
    Severity.INFO: "dim",
}

_SEVERITY_RANK = {severity: rank for rank, severity in enumerate(Severity)}


def _sorted_feedback(feedback: list[ReviewFeedback]) -> list[ReviewFeedback]:
    return sorted(feedback, key=lambda f: (_SEVERITY_RANK[f.severity], f.line))


def render_batch(console: Console, files: list[CodeFile], batch: BatchCodeReview) -> None:
    console.print(Panel(Markdown(batch.overall_summary or "_No summary._"), title="Review summary", border_style="cyan"))

    counts = count_severities(batch)
    total = sum(counts.values())
    if total:
        parts = [f"[{SEVERITY_STYLE[s]}]{n} {s.value.lower()}[/{SEVERITY_STYLE[s]}]" for s, n in counts.items() if n]
        console.print(f"[bold]{len(batch.file_reviews)}[/bold] file(s) reviewed · {total} finding(s): " + ", ".join(parts))
    else:
        console.print(f"{len(batch.file_reviews)} file(s) reviewed · [green]no issues found[/green]")

    for file in files:
        review = batch.file_reviews.get(file.name)
        if review is None:
            continue
        console.print(f"\n[bold cyan]{escape(file.name)}[/bold cyan]  [dim]{escape(file.language)}[/dim]")
        if len(files) > 1:
            console.print(Markdown(review.overall_summary))
        if not review.feedback:
            console.print("  [green]No issues.[/green]")
            continue
        for item in _sorted_feedback(review.feedback):
            style = SEVERITY_STYLE[item.severity]
            where = f"line {item.line}" if item.line > 0 else "file-wide"
            console.print(
                f"  [{style}]{item.severity.value.upper()}[/{style}]  [bold]{item.category.value}[/bold]  [dim]{where}[/dim]"
            )
            console.print(f"    {escape(item.description)}")
            if item.suggestion:
                console.print(Markdown(item.suggestion))


def render_reply(console: Console, text: str) -> None:
    console.print(Markdown(text))
