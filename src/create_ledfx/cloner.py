"""Clone the selected repositories into their workspace folders."""

import subprocess
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable, Sequence

from .catalog import REPOSITORIES, RepoEntry, find_nested_folders
from .errors import CloneError
from .ui import console

Runner = Callable[..., subprocess.CompletedProcess]


@dataclass
class CloneReport:
    cloned: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    upstream_failed: list[str] = field(default_factory=list)


def clone_order(entries: Sequence[RepoEntry]) -> list[RepoEntry]:
    """Catalog order, except that a folder is always cloned before folders nested in it."""
    ordered: list[RepoEntry] = []
    pending = list(entries)
    while pending:
        entry = pending.pop(0)
        ancestors = [outer for outer, inner in find_nested_folders(pending + [entry]) if inner == entry]
        ancestors.sort(key=lambda e: len(PurePosixPath(e.folder).parts))
        for outer in ancestors:
            pending.remove(outer)
            ordered.append(outer)
        ordered.append(entry)
    return ordered


def add_upstream_remote(target: Path, upstream: str, runner: Runner = subprocess.run) -> bool:
    try:
        runner(["git", "remote", "add", "upstream", upstream], cwd=target, check=True)
    except (subprocess.CalledProcessError, OSError) as e:
        console.print(f"[yellow]Failed to add upstream remote to {target.name}:[/yellow] {e}")
        return False
    console.print(f"[green]✓[/green] Added upstream remote ({upstream}) to {target.name}")
    return True


def _nested_checkouts(entry: RepoEntry, root: Path, catalog: Sequence[RepoEntry]) -> list[RepoEntry]:
    known = list(catalog)
    if entry not in known:
        known.append(entry)
    return [inner for outer, inner in find_nested_folders(known) if outer == entry and (root / inner.folder).exists()]


def clone_repository(entry: RepoEntry, root: Path, runner: Runner = subprocess.run, catalog: Sequence[RepoEntry] = REPOSITORIES) -> bool:
    """Clone one entry below ``root``; returns False when it is already checked out.

    A folder that exists only because a nested checkout created it is not
    skipped: git cannot clone into it, so CloneError is raised instead.
    """
    target = root / entry.folder
    if target.exists():
        if not (target / ".git").exists():
            nested = _nested_checkouts(entry, root, catalog)
            if nested:
                names = ", ".join(n.folder for n in nested)
                raise CloneError(
                    entry.folder,
                    f"{entry.folder} exists but is not a git checkout; it only holds {names}. "
                    f"Move {entry.folder} aside, then run setup again with both folders selected.",
                )
        console.print(f"[yellow]Folder {entry.folder} already exists, skipping.[/yellow]")
        return False

    console.print(f"[cyan]Cloning {entry.url} into {entry.folder}...[/cyan]")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CloneError(entry.folder, f"Could not create {target.parent}: {e}") from e
    try:
        runner(["git", "clone", entry.url, entry.folder], cwd=root, check=True)
    except subprocess.CalledProcessError as e:
        raise CloneError(entry.folder, f"git clone of {entry.url} into {entry.folder} failed (exit code {e.returncode})", e.returncode) from e
    except FileNotFoundError as e:
        raise CloneError(entry.folder, "git executable not found; install git from https://git-scm.com/downloads") from e
    return True


def clone_repositories(entries: Sequence[RepoEntry], root: Path, runner: Runner = subprocess.run, catalog: Sequence[RepoEntry] = REPOSITORIES) -> CloneReport:
    """Clone every entry that is not checked out yet.

    Stops at the first failed clone by raising CloneError; folders that already
    exist are skipped so the run can simply be repeated.
    """
    report = CloneReport()
    chosen = {e.folder for e in entries}

    for outer, inner in find_nested_folders(entries):
        console.print(
            f"[yellow]Warning:[/yellow] {inner.folder} is nested inside {outer.folder}; "
            f"{outer.folder} will be cloned first."
        )

    for outer, inner in find_nested_folders(catalog):
        if inner.folder not in chosen or outer.folder in chosen:
            continue
        if (root / outer.folder / ".git").exists() or (root / inner.folder).exists():
            continue
        console.print(
            f"[yellow]Warning:[/yellow] {inner.folder} is nested inside {outer.folder}, which is not "
            f"checked out; select both to clone {outer.folder} as well."
        )

    for entry in clone_order(entries):
        if not clone_repository(entry, root, runner=runner, catalog=catalog):
            report.skipped.append(entry.folder)
            continue
        report.cloned.append(entry.folder)
        if entry.upstream and not add_upstream_remote(root / entry.folder, entry.upstream, runner=runner):
            report.upstream_failed.append(entry.folder)

    return report
