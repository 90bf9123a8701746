# ----------------------------------------------------------------
# Nord-Themed Console Helpers
# ----------------------------------------------------------------
from typing import Iterable, Optional

import pyfiglet
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from proxy_setup.config import APP_NAME, APP_SUBTITLE, VERSION


class NordColors:
    """Nord color palette for consistent theming throughout the application."""

    POLAR_NIGHT_1 = "#2E3440"
    SNOW_STORM_1 = "#D8DEE9"
    SNOW_STORM_2 = "#E5E9F0"
    FROST_1 = "#8FBCBB"
    FROST_2 = "#88C0D0"
    FROST_3 = "#81A1C1"
    FROST_4 = "#5E81AC"
    RED = "#BF616A"
    ORANGE = "#D08770"
    YELLOW = "#EBCB8B"
    GREEN = "#A3BE8C"


theme = Theme(
    {
        "nord0": NordColors.POLAR_NIGHT_1,
        "nord8": NordColors.FROST_2,
        "nord9": NordColors.FROST_3,
        "nord10": NordColors.FROST_4,
        "nord11": NordColors.RED,
        "nord13": NordColors.YELLOW,
        "nord14": NordColors.GREEN,
    }
)
console = Console(theme=theme)


def create_header(title: str = APP_NAME) -> Panel:
    """Render the ASCII art banner, falling back through a few fonts."""
    ascii_art = ""
    for font in ("slant", "small", "mini"):
        try:
            ascii_art = pyfiglet.Figlet(font=font, width=70).renderText(title)
        except pyfiglet.FontNotFound:
            continue
        if ascii_art.strip():
            break
    if not ascii_art.strip():
        ascii_art = title

    colors = [NordColors.FROST_1, NordColors.FROST_2, NordColors.FROST_3, NordColors.FROST_2]
    lines = [line for line in ascii_art.split("\n") if line.strip()]
    styled = "".join(
        f"[bold {colors[i % len(colors)]}]{line}[/]\n" for i, line in enumerate(lines)
    )
    return Panel(
        Text.from_markup(styled.rstrip("\n")),
        border_style=NordColors.FROST_1,
        padding=(1, 2),
        title=f"[bold {NordColors.SNOW_STORM_2}]v{VERSION}[/]",
        title_align="right",
        subtitle=f"[bold {NordColors.SNOW_STORM_1}]{APP_SUBTITLE}[/]",
        subtitle_align="center",
    )


def print_header() -> None:
    console.print(create_header())


def print_section(title: str) -> None:
    border = "═" * 60
    console.print(f"\n[bold {NordColors.FROST_3}]{border}[/]")
    console.print(f"[bold {NordColors.FROST_2}]  {title}[/]")
    console.print(f"[bold {NordColors.FROST_3}]{border}[/]\n")


def print_step(text: str) -> None:
    console.print(f"[{NordColors.FROST_2}]• {escape(text)}[/]")


def print_success(text: str) -> None:
    console.print(f"[bold {NordColors.GREEN}]✓ {escape(text)}[/]")


def print_warning(text: str) -> None:
    console.print(f"[bold {NordColors.YELLOW}]⚠ {escape(text)}[/]")


def print_error(text: str) -> None:
    console.print(f"[bold {NordColors.RED}]✗ {escape(text)}[/]")


def display_panel(message: str, style: str = NordColors.FROST_2, title: Optional[str] = None) -> None:
    console.print(
        Panel(
            Text.from_markup(f"[{style}]{message}[/]"),
            title=title,
            border_style=NordColors.FROST_3,
            padding=(1, 2),
        )
    )


STATUS_ICONS = {
    "success": "✓",
    "failed": "✗",
    "pending": "?",
    "skipped": "⏭",
}
STATUS_COLORS = {
    "success": "nord14",
    "failed": "nord11",
    "pending": "nord13",
    "skipped": "nord9",
}


def status_table(outcomes: Iterable) -> Table:
    """Build the end-of-run table from StepOutcome records."""
    table = Table(
        title="Setup Status Report",
        box=box.ROUNDED,
        border_style=NordColors.FROST_3,
        title_style=f"bold {NordColors.FROST_2}",
    )
    table.add_column("", justify="center", width=3)
    table.add_column("Step", style=NordColors.SNOW_STORM_1)
    table.add_column("Status", justify="center")
    table.add_column("Time", justify="right", style=NordColors.FROST_3)
    for outcome in outcomes:
        color = STATUS_COLORS.get(outcome.status, "")
        table.add_row(
            f"[{color}]{STATUS_ICONS.get(outcome.status, '?')}[/]",
            outcome.description,
            f"[{color}]{outcome.status.upper()}[/]",
            f"{outcome.elapsed:.2f}s" if outcome.elapsed is not None else "-",
        )
    return table


def print_status_report(outcomes: Iterable) -> None:
    console.print()
    console.print(status_table(outcomes))
