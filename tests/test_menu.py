from __future__ import annotations

import pytest
import typer

import create_ledfx.menu as menu
from create_ledfx.catalog import REPOSITORIES
from create_ledfx.menu import (
    MenuStatus,
    SelectionState,
    build_menu_panel,
    chosen_entries,
    handle_key,
    initial_state,
    move_cursor,
    toggle,
)


def _feed(monkeypatch, keys: list[str]) -> None:
    pending = iter(keys)

    def fake_get_key() -> str:
        key = next(pending)
        if key == "ctrl-c":
            raise KeyboardInterrupt
        return key

    monkeypatch.setattr(menu, "get_key", fake_get_key)


def test_initial_state_preselects_known_folders_only() -> None:
    state = initial_state(REPOSITORIES, ["frontend", "backend", "missing"])
    assert state.cursor == 0
    assert state.chosen == frozenset({"frontend", "backend"})


def test_cursor_wraps_in_both_directions() -> None:
    size = len(REPOSITORIES)
    state = SelectionState()
    assert move_cursor(state, -1, size).cursor == size - 1
    assert move_cursor(SelectionState(cursor=size - 1), 1, size).cursor == 0


@pytest.mark.parametrize("start", [0, 3, 8])
def test_moving_catalog_length_times_returns_to_start(start: int) -> None:
    state = SelectionState(cursor=start)
    for _ in range(len(REPOSITORIES)):
        state, status = handle_key(state, "down", REPOSITORIES)
        assert status is MenuStatus.BROWSING
    assert state.cursor == start

    for _ in range(len(REPOSITORIES)):
        state, _ = handle_key(state, "up", REPOSITORIES)
    assert state.cursor == start


def test_toggle_twice_restores_selection() -> None:
    state = initial_state(REPOSITORIES, ["frontend"])
    once = toggle(state, "frontend")
    assert "frontend" not in once.chosen
    assert toggle(once, "frontend") == state


def test_space_toggles_entry_under_cursor() -> None:
    state = SelectionState(cursor=2)
    state, status = handle_key(state, "space", REPOSITORIES)
    assert status is MenuStatus.BROWSING
    assert state.chosen == frozenset({"_audio-visualiser"})


def test_enter_confirms_and_escape_aborts() -> None:
    state = SelectionState()
    assert handle_key(state, "enter", REPOSITORIES)[1] is MenuStatus.CONFIRMED
    assert handle_key(state, "escape", REPOSITORIES)[1] is MenuStatus.ABORTED
    assert handle_key(state, "x", REPOSITORIES) == (state, MenuStatus.BROWSING)


def test_chosen_entries_follow_catalog_order_not_toggle_order() -> None:
    state = SelectionState()
    for folder in ["_pipeline", "backend", "_audio-visualiser", "frontend"]:
        state = toggle(state, folder)
    assert [e.folder for e in chosen_entries(state, REPOSITORIES)] == [
        "frontend",
        "backend",
        "_audio-visualiser",
        "_pipeline",
    ]


def test_build_menu_panel_renders_every_entry() -> None:
    panel = build_menu_panel(initial_state(REPOSITORIES, ["backend"]), REPOSITORIES)
    assert panel.renderable.row_count == len(REPOSITORIES) + 3


def test_select_repositories_returns_confirmed_choice(monkeypatch) -> None:
    # cursor starts on frontend: deselect it, move to visualiser and select it
    _feed(monkeypatch, ["space", "down", "down", "space", "enter"])
    chosen = menu.select_repositories(REPOSITORIES, ["frontend", "backend"])
    assert [e.folder for e in chosen] == ["backend", "_audio-visualiser"]


def test_select_repositories_allows_empty_selection(monkeypatch) -> None:
    _feed(monkeypatch, ["enter"])
    assert menu.select_repositories(REPOSITORIES) == []


@pytest.mark.parametrize("abort_key", ["escape", "ctrl-c"])
def test_select_repositories_exits_on_abort(monkeypatch, abort_key: str) -> None:
    _feed(monkeypatch, ["down", abort_key])
    with pytest.raises(typer.Exit) as excinfo:
        menu.select_repositories(REPOSITORIES)
    assert excinfo.value.exit_code == 1
