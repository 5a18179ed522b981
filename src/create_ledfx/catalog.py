"""Static catalog of the LedFx repositories, their workspace folders and tasks."""

import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Iterable, Optional

from .errors import CatalogError

WORKSPACE_FOLDER_PATTERN = re.compile(r"\$\{workspaceFolder:([^}]+)}")


@dataclass(frozen=True)
class RepoEntry:
    folder: str
    url: str
    upstream: Optional[str] = None


@dataclass(frozen=True)
class DisplayTemplate:
    folder: str
    path: str
    name: str
    settings: Optional[dict] = None

    def to_folder(self) -> dict:
        """Return the entry used in the workspace file's ``folders`` array."""
        folder = {"path": self.path, "name": self.name}
        if self.settings:
            folder["settings"] = dict(self.settings)
        return folder


@dataclass(frozen=True)
class TaskTemplate:
    label: str
    command: str
    args: Optional[list] = None
    options: Optional[dict] = None
    presentation: dict = field(default_factory=lambda: {"reveal": "always"})
    group: str = "build"
    problem_matcher: Optional[list] = None
    type: str = "shell"

    @property
    def working_folder(self) -> Optional[str]:
        """Display name of the folder this task runs in, or None if it runs anywhere."""
        cwd = (self.options or {}).get("cwd")
        if not cwd:
            return None
        match = WORKSPACE_FOLDER_PATTERN.search(cwd)
        return match.group(1) if match else None

    def to_dict(self) -> dict:
        task = {"label": self.label, "type": self.type, "command": self.command}
        if self.args is not None:
            task["args"] = list(self.args)
        if self.options is not None:
            task["options"] = dict(self.options)
        if self.presentation is not None:
            task["presentation"] = dict(self.presentation)
        task["group"] = self.group
        if self.problem_matcher is not None:
            task["problemMatcher"] = list(self.problem_matcher)
        return task


REPOSITORIES: tuple[RepoEntry, ...] = (
    RepoEntry("frontend", "https://github.com/YeonV/LedFx-Frontend-v2.git"),
    RepoEntry("backend", "https://github.com/LedFx/LedFx.git"),
    RepoEntry(
        "_audio-visualiser",
        "https://github.com/Mattallmighty/audio-visualiser.git",
        upstream="https://github.com/YeonV/audio-visualiser.git",
    ),
    RepoEntry("_react-dynamic-module", "https://github.com/YeonV/react-dynamic-module.git"),
    RepoEntry("_pipeline/tools/song_detector", "https://github.com/YeonV/LedFx-Builds.git"),
    RepoEntry(
        "_python-for-android",
        "https://github.com/YeonV/python-for-android.git",
        upstream="https://github.com/broccoliboy/python-for-android.git",
    ),
    RepoEntry(
        "_pipeline_android",
        "https://github.com/YeonV/ledfx-android.git",
        upstream="https://github.com/broccoliboy/ledfx-android.git",
    ),
    RepoEntry("_download", "https://github.com/YeonV/LedFx-Builds.git"),
    RepoEntry("_pipeline", "https://github.com/YeonV/ledfx-web.git"),
)

# Pre-selected when the menu opens
DEFAULT_SELECTION = ("frontend", "backend")

FOLDER_TEMPLATES: dict[str, DisplayTemplate] = {
    t.folder: t
    for t in (
        DisplayTemplate("frontend", "frontend", "[Frontend] Web + CC", {"npm.packageManager": "yarn"}),
        DisplayTemplate("backend", "backend", "[Backend] Core"),
        DisplayTemplate("_audio-visualiser", "_audio-visualiser", "[Visualiser]", {"npm.packageManager": "pnpm"}),
        DisplayTemplate("_react-dynamic-module", "_react-dynamic-module", "[Dynamic Module]", {"npm.packageManager": "yarn"}),
        DisplayTemplate("_pipeline/tools/song_detector", "_pipeline/tools/song_detector", "[Song Detector]"),
        DisplayTemplate("_python-for-android", "_python-for-android", "[Python For Android]"),
        DisplayTemplate("_pipeline_android", "_pipeline_android", "[Build Android]"),
        DisplayTemplate("_download", "_download", "[Download Page]", {"npm.packageManager": "yarn"}),
        DisplayTemplate("_pipeline", "_pipeline", "[Build]"),
    )
}

SETUP_TASK_LABEL = "Init Workspace (clone all repos)"

TASK_TEMPLATES: tuple[TaskTemplate, ...] = (
    TaskTemplate(
        label=SETUP_TASK_LABEL,
        command="uvx",
        args=["create-ledfx", "setup"],
        options={"cwd": "${workspaceFolder}/../"},
    ),
    TaskTemplate(
        label="[Backend] Start",
        command="uv",
        args=["run", "ledfx", "--offline", "-vv"],
        options={"cwd": "${workspaceFolder:[Backend] Core}"},
    ),
    TaskTemplate(
        label="[Frontend] Start",
        command="yarn",
        args=["start"],
        options={"cwd": "${workspaceFolder:[Frontend] Web + CC}"},
    ),
    TaskTemplate(
        label="[Backend] Init",
        command="uv",
        args=["run", "ledfx-loopback-install"],
        options={"cwd": "${workspaceFolder:[Backend] Core}"},
        problem_matcher=[],
    ),
    TaskTemplate(
        label="[Frontend] Init",
        command="yarn",
        options={"cwd": "${workspaceFolder:[Frontend] Web + CC}"},
    ),
    TaskTemplate(
        label="[Visualiser] Init",
        command="pnpm",
        args=["install"],
        options={"cwd": "${workspaceFolder:[Visualiser]}"},
    ),
    TaskTemplate(
        label="[Visualiser] Start",
        command="pnpm",
        args=["dev"],
        options={"cwd": "${workspaceFolder:[Visualiser]}"},
    ),
)


def display_name(entry: RepoEntry, templates: dict[str, DisplayTemplate] = FOLDER_TEMPLATES) -> str:
    template = templates.get(entry.folder)
    if template:
        return template.name
    if entry.folder:
        return entry.folder
    return entry.url.rstrip("/").split("/")[-1].removesuffix(".git")


def find_entries(folders: Iterable[str], entries: Iterable[RepoEntry] = REPOSITORIES) -> list[RepoEntry]:
    """Look up entries by folder, returned in catalog order.

    Raises CatalogError naming every folder that is not in the catalog.
    """
    wanted = set(folders)
    entries = list(entries)
    known = {e.folder for e in entries}
    unknown = sorted(wanted - known)
    if unknown:
        raise CatalogError(f"Unknown repository folder(s): {', '.join(unknown)}")
    return [e for e in entries if e.folder in wanted]


def validate_catalog(entries: Iterable[RepoEntry]) -> None:
    seen: set[str] = set()
    duplicates: list[str] = []
    for entry in entries:
        if entry.folder in seen:
            duplicates.append(entry.folder)
        seen.add(entry.folder)
    if duplicates:
        raise CatalogError(f"Duplicate catalog folder(s): {', '.join(duplicates)}")


def _is_nested(ancestor: str, descendant: str) -> bool:
    a = PurePosixPath(ancestor)
    d = PurePosixPath(descendant)
    return a != d and a in d.parents


def find_nested_folders(entries: Iterable[RepoEntry]) -> list[tuple[RepoEntry, RepoEntry]]:
    """Return ``(ancestor, descendant)`` pairs where one checkout lives inside another."""
    entries = list(entries)
    return [
        (outer, inner)
        for outer in entries
        for inner in entries
        if _is_nested(outer.folder, inner.folder)
    ]
