"""Rich console output and markdown transcript export for debate sessions."""

import logging
import re
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from math_council.models import Message, Personality, SessionRecord, SessionStatus

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _preview(text: str, max_len: int = 60) -> str:
    return text if len(text) <= max_len else text[: max_len - 3] + "..."


def print_message(message: Message, turn: int | None = None) -> None:
    """Print one debate message as a panel."""
    title = f"[bold]{message.name}[/bold]"
    if message.specialty:
        title += f" ({message.specialty})"
    console.print(
        Panel(
            message.content,
            title=title,
            subtitle=f"turn {turn}" if turn is not None else None,
            border_style="cyan",
        )
    )


def print_status(status: SessionStatus) -> None:
    """Print the session header: problem, progress and roster."""
    if status.is_complete:
        state = "[green]complete[/green]"
    elif status.is_paused:
        state = "[yellow]paused[/yellow]"
    else:
        state = "[cyan]in progress[/cyan]"

    console.print(Rule(f"[bold cyan]Session {status.id}[/bold cyan]"))
    console.print(f"[bold]Problem:[/bold] {status.problem}")
    console.print(
        Text(
            f"Difficulty: {status.difficulty} | "
            f"Turns: {status.round_count}/{status.max_rounds} | "
            f"Created: {status.created_at:%Y-%m-%d %H:%M}",
            style="dim",
        )
    )
    console.print(f"State: {state}")

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Specialty")
    table.add_column("Next", justify="center")
    for p in status.participants:
        is_next = status.current_speaker is not None and p.id == status.current_speaker.id
        table.add_row(str(p.id), p.name, p.specialty, "*" if is_next and not status.is_complete else "")
    console.print(table)


def print_sessions(sessions: Sequence[SessionRecord]) -> None:
    """Print past sessions, most recent first."""
    if not sessions:
        console.print("[dim]No debates yet.[/dim]")
        return
    table = Table(title="Past Debates", header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Created")
    table.add_column("Difficulty")
    table.add_column("Problem")
    for s in sessions:
        table.add_row(str(s.id), f"{s.created_at:%Y-%m-%d %H:%M}", s.difficulty, _preview(s.problem))
    console.print(table)


def print_personalities(personalities: Sequence[Personality]) -> None:
    table = Table(title="The Math Council", header_style="bold")
    table.add_column("Name")
    table.add_column("Personality")
    table.add_column("Specialty")
    for p in personalities:
        table.add_row(p.name, p.personality, p.specialty)
    console.print(table)


def save_transcript(
    status: SessionStatus,
    messages: Sequence[Message],
    output_dir: Path,
) -> Path:
    """Save the full debate transcript as a markdown file.

    Args:
        status: Snapshot of the session being exported.
        messages: The persisted transcript, oldest first.
        output_dir: Directory to save the file in.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"{timestamp}_session-{status.id}_{_slug(status.problem)}.md"
    filepath = output_dir / filename

    roster = ", ".join(p.name for p in status.participants) or "(none)"
    state = "complete" if status.is_complete else "in progress"

    lines: list[str] = [
        f"# Math Council Debate #{status.id}",
        "",
        f"**Problem:** {status.problem}",
        f"**Difficulty:** {status.difficulty}",
        f"**Started:** {status.created_at:%Y-%m-%d %H:%M:%S}",
        f"**Exported:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Participants:** {roster}",
        f"**Turns:** {status.round_count}/{status.max_rounds} ({state})",
        "",
        "---",
        "",
    ]

    if not messages:
        lines += ["*No messages yet.*", ""]

    for turn, msg in enumerate(messages, start=1):
        lines.append(f"## {turn}. {msg.name}")
        lines.append("")
        if msg.personality or msg.specialty:
            lines.append(f"*{msg.personality}; {msg.specialty}*")
            lines.append("")
        lines.append(msg.content)
        lines.append("")
        lines.append(f"*{msg.created_at:%H:%M:%S}*")
        lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
