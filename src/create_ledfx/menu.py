"""Interactive repository picker.

The menu state is an immutable :class:`SelectionState`; every keypress is fed
through :func:`handle_key`, which returns the next state and the menu status.
Only :func:`select_repositories` reads keys and drives the live display.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Sequence

import typer
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .catalog import RepoEntry, display_name
from .ui import console, get_key


class MenuStatus(Enum):
    BROWSING = "browsing"
    CONFIRMED = "confirmed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class SelectionState:
    cursor: int = 0
    chosen: frozenset = frozenset()


def initial_state(entries: Sequence[RepoEntry], preselected: Iterable[str] = ()) -> SelectionState:
    known = {e.folder for e in entries}
    return SelectionState(cursor=0, chosen=frozenset(f for f in preselected if f in known))


def move_cursor(state: SelectionState, delta: int, size: int) -> SelectionState:
    if size <= 0:
        return state
    return replace(state, cursor=(state.cursor + delta) % size)


def toggle(state: SelectionState, key: str) -> SelectionState:
    if key in state.chosen:
        return replace(state, chosen=state.chosen - {key})
    return replace(state, chosen=state.chosen | {key})


def handle_key(state: SelectionState, key: str, entries: Sequence[RepoEntry]) -> tuple[SelectionState, MenuStatus]:
    if key == 'up':
        return move_cursor(state, -1, len(entries)), MenuStatus.BROWSING
    if key == 'down':
        return move_cursor(state, 1, len(entries)), MenuStatus.BROWSING
    if key in ('space', ' '):
        if not entries:
            return state, MenuStatus.BROWSING
        return toggle(state, entries[state.cursor].folder), MenuStatus.BROWSING
    if key == 'enter':
        return state, MenuStatus.CONFIRMED
    if key == 'escape':
        return state, MenuStatus.ABORTED
    return state, MenuStatus.BROWSING


def chosen_entries(state: SelectionState, entries: Sequence[RepoEntry]) -> list[RepoEntry]:
    # Catalog order, not the order the user toggled in
    return [e for e in entries if e.folder in state.chosen]


def build_menu_panel(state: SelectionState, entries: Sequence[RepoEntry]) -> Panel:
    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan", justify="left", width=3)
    table.add_column(style="white", justify="left")

    for i, entry in enumerate(entries):
        pointer = "▶" if i == state.cursor else " "
        mark = "[green]\\[x][/green]" if entry.folder in state.chosen else "[bright_black][ ][/bright_black]"
        name = escape(display_name(entry))
        if i == state.cursor:
            name = f"[bold]{name}[/bold]"
        table.add_row(pointer, f"{mark} {name} [dim]({entry.folder})[/dim]")

    table.add_row("", "")
    table.add_row("", f"[dim]{len(state.chosen)} of {len(entries)} selected[/dim]")
    table.add_row("", "[dim]Use ↑/↓ to navigate, Space to toggle, Enter to confirm, Esc to cancel[/dim]")

    return Panel(
        table,
        title="[bold]Select repos to clone[/bold]",
        border_style="cyan",
        padding=(1, 2),
    )


def select_repositories(entries: Sequence[RepoEntry], preselected: Iterable[str] = ()) -> list[RepoEntry]:
    """Let the user pick repositories; returns them in catalog order (possibly empty)."""
    state = initial_state(entries, preselected)
    console.print()

    with Live(build_menu_panel(state, entries), console=console, transient=True, auto_refresh=False) as live:
        while True:
            try:
                state, status = handle_key(state, get_key(), entries)
            except KeyboardInterrupt:
                status = MenuStatus.ABORTED

            if status is MenuStatus.CONFIRMED:
                break
            if status is MenuStatus.ABORTED:
                console.print("\n[yellow]Selection cancelled[/yellow]")
                raise typer.Exit(1)

            live.update(build_menu_panel(state, entries), refresh=True)

    return chosen_entries(state, entries)
