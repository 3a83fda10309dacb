"""Terminal rendering for incidents and their audit trail."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone


console = Console()

PRIORITY_COLORS = {
    "LOW": "green",
    "MEDIUM": "yellow",
    "HIGH": "red",
    "CRITICAL": "bold red",
}

STATE_COLORS = {
    "REPORTED": "yellow",
    "ACKNOWLEDGED": "cyan",
    "INVESTIGATING": "blue",
    "MITIGATING": "magenta",
    "RESOLVED": "green",
    "CLOSED": "dim",
}


def print_error(message: str, hint: Optional[str] = None):
    console.print(f"[bold red]Error:[/bold red] {message}")
    if hint:
        console.print(f"[dim]{hint}[/dim]")


def print_success(message: str):
    console.print(f"[bold green]✓[/bold green] {message}")


def print_info(message: str):
    console.print(f"[bold blue]ℹ[/bold blue] {message}")


def _colored(value: str, colors: Dict[str, str]) -> str:
    color = colors.get(value, "white")
    return f"[{color}]{value}[/{color}]"


def format_state(state: str) -> str:
    return _colored(state, STATE_COLORS)


def format_priority(priority: str) -> str:
    return _colored(priority, PRIORITY_COLORS)


def parse_timestamp(timestamp: Optional[str]) -> Optional[datetime]:
    if not timestamp:
        return None
    try:
        return datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None


def format_timestamp(timestamp: Optional[str]) -> str:
    """Render an API timestamp as 'YYYY-MM-DD HH:MM:SS', or echo it if unparseable."""
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return timestamp or "-"
    return parsed.strftime("%Y-%m-%d %H:%M:%S")


def format_age(timestamp: Optional[str], now: Optional[datetime] = None) -> str:
    """Compact age of a timestamp, e.g. '42s', '7m', '3h', '2d'."""
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return ""
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    seconds = max(0, int(((now or datetime.now(timezone.utc)) - parsed).total_seconds()))
    for unit, size in (("d", 86400), ("h", 3600), ("m", 60)):
        if seconds >= size:
            return f"{seconds // size}{unit}"
    return f"{seconds}s"


def format_incident(incident: Dict[str, Any], now: Optional[datetime] = None) -> Panel:
    """
    Build the detail view of one incident.

    Args:
        incident: Incident as returned by the API
        now: Reference time for the age column (defaults to the current time)

    Returns:
        Rich Panel titled with the short id, bordered in the priority color
    """
    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="bold", no_wrap=True)
    grid.add_column()

    grid.add_row("Incident ID", str(incident["id"]))
    grid.add_row("Title", incident["title"])
    grid.add_row("State", format_state(incident["state"]))
    grid.add_row(
        "Priority",
        f"{format_priority(incident['priority'])} (severity {incident['severity']})",
    )
    grid.add_row("Affected systems", str(incident["affected_systems_count"]))
    grid.add_row(
        "Reported",
        f"{format_timestamp(incident['reported_at'])} by {incident['reported_by']} "
        f"[dim]({format_age(incident['reported_at'], now)} ago)[/dim]",
    )
    grid.add_row("Assigned to", incident.get("assigned_to") or "[dim]unassigned[/dim]")

    for field, label in (
        ("acknowledged_at", "Acknowledged"),
        ("resolved_at", "Resolved"),
        ("closed_at", "Closed"),
    ):
        if incident.get(field):
            grid.add_row(label, format_timestamp(incident[field]))

    if incident.get("description"):
        grid.add_row("Description", incident["description"])

    grid.add_row(
        "Activity",
        f"[dim]{incident.get('comment_count', 0)} comment(s), "
        f"{incident.get('audit_entry_count', 0)} audit entr(ies)[/dim]",
    )

    return Panel(
        grid,
        title=f"Incident {str(incident['id'])[:8]}",
        border_style=PRIORITY_COLORS.get(incident["priority"], "blue"),
        box=box.ROUNDED,
    )


def print_audit_table(entries: List[Dict[str, Any]]):
    """
    Print an incident's audit trail.

    Args:
        entries: Audit entries, already in display order
    """
    if not entries:
        print_info("No audit entries recorded.")
        return

    table = Table(title="Audit Trail", box=box.ROUNDED)
    table.add_column("When", style="green", no_wrap=True)
    table.add_column("Action", style="magenta")
    table.add_column("By", style="cyan")
    table.add_column("Details")

    for entry in entries:
        by = entry["performed_by"]
        table.add_row(
            format_timestamp(entry["timestamp"]),
            entry["action"],
            f"[dim]{by}[/dim]" if by == "SYSTEM" else by,
            entry.get("details", ""),
        )

    console.print(table)
