"""VS Code workspace file generation for the selected repositories."""

import json
import shutil
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Sequence

from .catalog import FOLDER_TEMPLATES, SETUP_TASK_LABEL, TASK_TEMPLATES, DisplayTemplate, RepoEntry, TaskTemplate
from .errors import WorkspaceConfigError

WORKSPACE_FILENAME = "ledfx.code-workspace"
WELCOME_PATH = "__welcome__"
WELCOME_FOLDER = {"path": WELCOME_PATH, "name": "_Welcome_"}
WELCOME_README = (
    "# Welcome!\n\n"
    "Use **Run Task** (Ctrl+Shift+P → Run Task) to initialize or start a subproject."
)
WORKSPACE_SETTINGS = {"workbench.startupEditor": "readme"}
TASKS_VERSION = "2.0.0"


def has_welcome_folder(folders: Iterable[dict]) -> bool:
    return any(isinstance(f, dict) and f.get("path") == WELCOME_PATH for f in folders)


def setup_task_command() -> list[str]:
    """Command line the Init Workspace task uses to re-run setup.

    The console script when it is installed on PATH, otherwise a throwaway
    ``uvx`` run of the published package.
    """
    if shutil.which("create-ledfx"):
        return ["create-ledfx", "setup"]
    return ["uvx", "create-ledfx", "setup"]


def with_setup_command(tasks: Iterable[TaskTemplate], command: Sequence[str]) -> list[TaskTemplate]:
    return [
        replace(t, command=command[0], args=list(command[1:])) if t.label == SETUP_TASK_LABEL else t
        for t in tasks
    ]


def filter_tasks(tasks: Iterable[TaskTemplate], folder_names: Iterable[str]) -> list[TaskTemplate]:
    """Keep tasks that run anywhere or in one of ``folder_names``."""
    names = set(folder_names)
    return [t for t in tasks if t.working_folder is None or t.working_folder in names]


def build_workspace(
    entries: Sequence[RepoEntry],
    templates: dict[str, DisplayTemplate] = FOLDER_TEMPLATES,
    tasks: Sequence[TaskTemplate] = TASK_TEMPLATES,
    setup_command: Sequence[str] | None = None,
) -> dict:
    """Build the workspace document for the chosen entries.

    Entries without a display template are cloned but get no workspace folder.
    The welcome folder is always last and appears once. ``setup_command``
    defaults to :func:`setup_task_command`.
    """
    if setup_command is None:
        setup_command = setup_task_command()
    tasks = with_setup_command(tasks, setup_command)
    folders = [templates[e.folder].to_folder() for e in entries if e.folder in templates]
    folder_names = [f["name"] for f in folders]
    if not has_welcome_folder(folders):
        folders.append(dict(WELCOME_FOLDER))

    return {
        "folders": folders,
        "settings": dict(WORKSPACE_SETTINGS),
        "tasks": {
            "version": TASKS_VERSION,
            "tasks": [t.to_dict() for t in filter_tasks(tasks, folder_names)],
        },
    }


def write_workspace(path: Path, descriptor: dict) -> Path:
    path = Path(path)
    path.write_text(json.dumps(descriptor, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def load_workspace(path: Path) -> dict:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise WorkspaceConfigError(f"Could not read {path}: {e}") from e
    except ValueError as e:
        raise WorkspaceConfigError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise WorkspaceConfigError(f"Expected a JSON object in {path}, found {type(data).__name__}")
    return data


def ensure_welcome_folder(path: Path) -> bool:
    """Append the welcome folder to an existing workspace file unless it is already there.

    Returns True when the file was rewritten.
    """
    data = load_workspace(path)
    folders = data.get("folders")
    if not isinstance(folders, list):
        folders = data["folders"] = []
    if has_welcome_folder(folders):
        return False
    folders.append(dict(WELCOME_FOLDER))
    write_workspace(path, data)
    return True


def write_welcome_readme(root: Path) -> Path:
    welcome_dir = Path(root) / WELCOME_PATH
    welcome_dir.mkdir(exist_ok=True)
    readme = welcome_dir / "README.md"
    readme.write_text(WELCOME_README, encoding="utf-8")
    return readme
