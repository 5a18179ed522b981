#!/usr/bin/env python3
"""
create-ledfx - installer for the LedFx development workspace

Usage:
    create-ledfx init <project-name>
    create-ledfx setup
    create-ledfx check

Or run without installing:
    uvx create-ledfx init <project-name>
"""

import shutil
import subprocess
import sys
from pathlib import Path
from typing import Optional

import httpx
import typer
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.align import Align
from rich.table import Table
from typer.core import TyperGroup

from .catalog import DEFAULT_SELECTION, REPOSITORIES, display_name, find_entries, validate_catalog
from .cloner import clone_repositories
from .errors import CatalogError, CloneError, LedfxError, WorkspaceConfigError
from .menu import select_repositories
from .release import (
    ASSET_NAME,
    DEFAULT_RELEASE_REPO,
    download_asset,
    extract_archive,
    fetch_latest_release,
    find_release_asset,
    make_client,
)
from .ui import StepTracker, console, show_banner
from .workspace import (
    WORKSPACE_FILENAME,
    build_workspace,
    ensure_welcome_folder,
    write_welcome_readme,
    write_workspace,
)

# Top-level folder inside ledfx-dev.zip
STAGING_DIRNAME = "ledfx-dev"
RELEASES_PAGE = f"https://github.com/{DEFAULT_RELEASE_REPO}/releases/latest"


class BannerGroup(TyperGroup):
    """Custom group that shows banner before help."""

    def format_help(self, ctx, formatter):
        show_banner()
        super().format_help(ctx, formatter)


app = typer.Typer(
    name="create-ledfx",
    help="Installer for the LedFx development workspace",
    add_completion=False,
    invoke_without_command=True,
    cls=BannerGroup,
)


@app.callback()
def callback(ctx: typer.Context):
    """Show the banner and the available commands when run bare."""
    if ctx.invoked_subcommand is not None:
        return
    show_banner()
    commands = ", ".join(f"[cyan]{name}[/cyan]" for name in ctx.command.list_commands(ctx))
    console.print(Align.center(f"[dim]Commands: {commands}. Run 'create-ledfx --help' for details.[/dim]"))
    console.print()


# (executable, label, hint shown when missing)
TOOLS = (
    ("git", "Git version control", "Install git to clone the LedFx repositories"),
    ("code", "Visual Studio Code", None),
    ("code-insiders", "Visual Studio Code Insiders", None),
)


def check_tool_for_tracker(tool: str, tracker: StepTracker) -> bool:
    """Record in ``tracker`` whether ``tool`` is on PATH."""
    found = shutil.which(tool)
    if found:
        tracker.complete(tool, found)
    else:
        tracker.error(tool, "not found")
    return bool(found)


def manual_instructions_panel(project_name: str) -> Panel:
    lines = [
        f"1. Download the latest [cyan]{ASSET_NAME}[/cyan] from:",
        f"   [cyan]{RELEASES_PAGE}[/cyan]",
        "2. Extract it.",
        f"3. Rename the '[cyan]{STAGING_DIRNAME}[/cyan]' folder to '[cyan]{project_name}[/cyan]'.",
        f"4. Open [cyan]{project_name}/{WORKSPACE_FILENAME}[/cyan] in VS Code and run the "
        "[cyan]Init Workspace[/cyan] task.",
    ]
    return Panel("\n".join(lines), title="Manual fallback", border_style="yellow", padding=(1, 2))


def download_progress(tracker: StepTracker, key: str = "download"):
    """Return an ``on_progress`` callback that shows the percentage in ``tracker``."""
    last = None

    def report(downloaded: int, total: int) -> None:
        nonlocal last
        if not total:
            return
        percent = min(100, downloaded * 100 // total)
        if percent != last:
            last = percent
            tracker.start(key, f"{percent}%")

    return report


def install_template(project_path: Path, work_dir: Path, client: httpx.Client, tracker: StepTracker, *, release_repo: str = DEFAULT_RELEASE_REPO, github_token: str | None = None, debug: bool = False) -> Path:
    """Fetch, download and extract the workspace template, then move it to ``project_path``."""
    tracker.start("fetch", "contacting GitHub API")
    release = fetch_latest_release(client, release_repo, github_token=github_token, debug=debug)
    asset = find_release_asset(release)
    tracker.complete("fetch", f"release {release.get('tag_name', '?')}")

    tracker.start("download")
    zip_path = download_asset(
        client,
        asset["browser_download_url"],
        work_dir / ASSET_NAME,
        github_token=github_token,
        on_progress=download_progress(tracker),
    )
    tracker.complete("download", f"{zip_path.stat().st_size:,} bytes")

    tracker.start("extract")
    names = extract_archive(zip_path, work_dir)
    staging = work_dir / STAGING_DIRNAME
    if not staging.is_dir():
        raise LedfxError(f"{ASSET_NAME} did not contain a '{STAGING_DIRNAME}' folder")
    tracker.complete("extract", f"{len(names)} entries")

    tracker.start("rename")
    staging.rename(project_path)
    tracker.complete("rename", project_path.name)
    return project_path


def patch_workspace(project_path: Path, tracker: StepTracker) -> None:
    tracker.start("workspace")
    changed = ensure_welcome_folder(project_path / WORKSPACE_FILENAME)
    write_welcome_readme(project_path)
    tracker.complete("workspace", "welcome folder added" if changed else "already up to date")


def run_workspace_setup(project_path: Path) -> bool:
    """Run ``create-ledfx setup`` as a child process inside the new workspace."""
    cmd = [sys.executable, "-m", "create_ledfx", "setup"]
    try:
        result = subprocess.run(cmd, cwd=project_path)
    except OSError as e:
        console.print(f"[red]Failed to run workspace setup:[/red] {e}")
        return False
    if result.returncode != 0:
        console.print(f"[yellow]Workspace setup exited with code {result.returncode}[/yellow]")
        return False
    return True


def open_in_editor(workspace_path: Path, editor: str = "code") -> bool:
    executable = shutil.which(editor)
    if executable is None:
        console.print(Panel(
            f"[cyan]{editor}[/cyan] command not found. Please open the workspace file manually:\n"
            f"[cyan]{workspace_path}[/cyan]",
            title="[yellow]Editor Not Found[/yellow]",
            border_style="yellow",
            padding=(1, 2),
        ))
        return False
    try:
        subprocess.run([executable, str(workspace_path)], cwd=workspace_path.parent)
    except OSError as e:
        console.print(f"[red]Failed to open workspace in {editor}:[/red] {e}")
        console.print(f"Open it manually: [cyan]{workspace_path}[/cyan]")
        return False
    return True


def _cleanup_partial_install(work_dir: Path) -> None:
    zip_path = work_dir / ASSET_NAME
    if zip_path.exists():
        zip_path.unlink()
    staging = work_dir / STAGING_DIRNAME
    if staging.exists():
        shutil.rmtree(staging)


@app.command()
def init(
    project_name: str = typer.Argument(None, help="Name for the new workspace directory (prompted for when omitted)"),
    release_repo: str = typer.Option(DEFAULT_RELEASE_REPO, "--release-repo", help="GitHub repository (owner/name) whose latest release provides ledfx-dev.zip"),
    github_token: str = typer.Option(None, "--github-token", help="GitHub token to use for API requests (or set GH_TOKEN or GITHUB_TOKEN environment variable)"),
    skip_tls: bool = typer.Option(False, "--skip-tls", help="Skip SSL/TLS verification (not recommended)"),
    no_setup: bool = typer.Option(False, "--no-setup", help="Do not run the repository selection and cloning step"),
    no_open: bool = typer.Option(False, "--no-open", help="Do not open the workspace in an editor"),
    editor: str = typer.Option("code", "--editor", help="Editor command used to open the workspace file"),
    debug: bool = typer.Option(False, "--debug", help="Show verbose diagnostic output for network and extraction failures"),
):
    """
    Create a new LedFx development workspace from the latest release.

    This command will:
    1. Download ledfx-dev.zip from the latest GitHub release
    2. Extract it and rename it to your project directory
    3. Add the welcome folder to ledfx.code-workspace
    4. Let you choose which LedFx repositories to clone
    5. Open the workspace in VS Code

    Examples:
        create-ledfx init my-ledfx
        create-ledfx init my-ledfx --no-open
        create-ledfx init my-ledfx --editor code-insiders
    """
    show_banner()

    if not project_name:
        if not sys.stdin.isatty():
            console.print("[red]Error:[/red] Interactive prompts require a TTY. Pass the project name as an argument.")
            raise typer.Exit(1)
        project_name = typer.prompt("Project directory name", default="", show_default=False)
    project_name = (project_name or "").strip()
    if not project_name:
        console.print("[red]Error:[/red] Directory name cannot be empty. Aborting.")
        raise typer.Exit(1)

    work_dir = Path.cwd()
    if (work_dir / STAGING_DIRNAME).exists():
        console.print()
        console.print(Panel(
            f"A folder named '[cyan]{STAGING_DIRNAME}[/cyan]' already exists in this directory.\n"
            "Please move or remove it before running this command.",
            title="[red]Directory Conflict[/red]",
            border_style="red",
            padding=(1, 2),
        ))
        raise typer.Exit(1)

    project_path = (work_dir / project_name).resolve()
    if project_path.exists():
        console.print()
        console.print(Panel(
            f"Directory '[cyan]{project_name}[/cyan]' already exists\n"
            "Please choose a different project name or remove the existing directory.",
            title="[red]Directory Conflict[/red]",
            border_style="red",
            padding=(1, 2),
        ))
        raise typer.Exit(1)

    setup_lines = [
        "[cyan]LedFx Workspace Setup[/cyan]",
        "",
        f"{'Project':<15} [green]{project_path.name}[/green]",
        f"{'Working Path':<15} [dim]{work_dir}[/dim]",
        f"{'Target Path':<15} [dim]{project_path}[/dim]",
        f"{'Release':<15} [dim]{release_repo}[/dim]",
    ]
    console.print(Panel("\n".join(setup_lines), border_style="cyan", padding=(1, 2)))

    tracker = StepTracker("Install LedFx Workspace")
    for key, label in [
        ("fetch", "Fetch latest release"),
        ("download", f"Download {ASSET_NAME}"),
        ("extract", "Extract archive"),
        ("rename", "Rename workspace folder"),
        ("workspace", "Patch workspace file"),
        ("setup", "Select and clone repositories"),
        ("editor", "Open workspace"),
    ]:
        tracker.add(key, label)

    workspace_error: WorkspaceConfigError | None = None
    with Live(tracker.render(), console=console, refresh_per_second=8, transient=True) as live:
        tracker.attach_refresh(lambda: live.update(tracker.render()))
        try:
            with make_client(verify=not skip_tls) as client:
                install_template(
                    project_path,
                    work_dir,
                    client,
                    tracker,
                    release_repo=release_repo,
                    github_token=github_token,
                    debug=debug,
                )
        except (LedfxError, httpx.HTTPError, OSError) as e:
            running = tracker.running() or "fetch"
            tracker.error(running, str(e).splitlines()[0] if str(e) else type(e).__name__)
            _cleanup_partial_install(work_dir)
            console.print(tracker.render())
            console.print(Panel(f"An error occurred during setup:\n{e}", title="Failure", border_style="red"))
            if debug:
                _env_pairs = [
                    ("Python", sys.version.split()[0]),
                    ("Platform", sys.platform),
                    ("CWD", str(work_dir)),
                ]
                _label_width = max(len(k) for k, _ in _env_pairs)
                env_lines = [f"{k.ljust(_label_width)} → [bright_black]{v}[/bright_black]" for k, v in _env_pairs]
                console.print(Panel("\n".join(env_lines), title="Debug Environment", border_style="magenta"))
            console.print(manual_instructions_panel(project_name))
            raise typer.Exit(1)

        try:
            patch_workspace(project_path, tracker)
        except (WorkspaceConfigError, OSError) as e:
            tracker.error("workspace", "see warning below")
            workspace_error = e

    tracker.attach_refresh(None)
    console.print(tracker.render())
    if workspace_error is not None:
        console.print(Panel(str(workspace_error), title="[yellow]Workspace File Warning[/yellow]", border_style="yellow"))
        console.print(manual_instructions_panel(project_name))

    workspace_path = project_path / WORKSPACE_FILENAME
    if no_setup:
        tracker.skip("setup", "--no-setup flag")
    elif run_workspace_setup(project_path):
        tracker.complete("setup")
    else:
        tracker.error("setup", "see output above")

    if no_open:
        tracker.skip("editor", "--no-open flag")
    elif open_in_editor(workspace_path, editor):
        tracker.complete("editor", editor)
    else:
        tracker.error("editor", f"{editor} not available")

    console.print(tracker.render())
    console.print("\n[bold green]Setup Complete! Have fun coding.[/bold green]")

    steps_lines = [
        f"1. Go to the project folder: [cyan]cd {project_name}[/cyan]",
        f"2. Open [cyan]{WORKSPACE_FILENAME}[/cyan] in VS Code",
        "3. Use [cyan]Run Task[/cyan] (Ctrl+Shift+P → Run Task) to initialize or start a subproject",
    ]
    console.print()
    console.print(Panel("\n".join(steps_lines), title="Next Steps", border_style="cyan", padding=(1, 2)))


@app.command()
def setup(
    select: Optional[list[str]] = typer.Option(None, "--select", "-s", help="Repository folder to clone (repeatable); skips the interactive menu"),
    all_repos: bool = typer.Option(False, "--all", help="Clone every repository in the catalog"),
    workspace_file: Path = typer.Option(Path(WORKSPACE_FILENAME), "--workspace-file", help="Workspace file to (over)write"),
    no_clone: bool = typer.Option(False, "--no-clone", help="Only regenerate the workspace file"),
):
    """
    Choose LedFx repositories, clone them and regenerate the workspace file.

    Run inside an extracted workspace. Folders that already exist are skipped,
    so the command can be repeated after a failed clone.

    Examples:
        create-ledfx setup
        create-ledfx setup --select frontend --select backend
        create-ledfx setup --all --no-clone
    """
    show_banner()
    root = Path.cwd()

    try:
        validate_catalog(REPOSITORIES)
        if all_repos and select:
            raise CatalogError("Use either --all or --select, not both")
        if all_repos:
            chosen = list(REPOSITORIES)
        elif select:
            chosen = find_entries(select, REPOSITORIES)
        else:
            chosen = None
    except CatalogError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if chosen is None:
        if not sys.stdin.isatty():
            console.print("[red]Error:[/red] Interactive selection requires a TTY. Use --select or --all.")
            raise typer.Exit(1)
        chosen = select_repositories(REPOSITORIES, DEFAULT_SELECTION)

    names = ", ".join(escape(display_name(e)) for e in chosen) or "(none)"
    console.print(f"[cyan]Selected repositories:[/cyan] {names}")

    if not no_clone:
        try:
            report = clone_repositories(chosen, root)
        except CloneError as e:
            console.print()
            console.print(Panel(
                f"{e}\n\nFix the problem and run [cyan]create-ledfx setup[/cyan] again; "
                "folders that were already cloned are skipped.",
                title="[red]Clone Error[/red]",
                border_style="red",
                padding=(1, 2),
            ))
            raise typer.Exit(1)

        table = Table.grid(padding=(0, 1))
        table.add_column(justify="left", style="yellow", width=18)
        table.add_column(justify="left", style="white")
        table.add_row("Cloned", ", ".join(report.cloned) or "-")
        table.add_row("Skipped", ", ".join(report.skipped) or "-")
        if report.upstream_failed:
            table.add_row("Upstream failed", ", ".join(report.upstream_failed))
        console.print(Panel(table, title="Repositories", border_style="cyan"))

    workspace_path = workspace_file if workspace_file.is_absolute() else root / workspace_file
    try:
        write_workspace(workspace_path, build_workspace(chosen))
    except OSError as e:
        console.print(f"[red]Error writing {workspace_path}:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Workspace file generated for selected repos: [cyan]{workspace_path}[/cyan]")


@app.command()
def check():
    """Check that all required tools are installed."""
    show_banner()
    console.print("[bold]Checking for installed tools...[/bold]\n")

    tracker = StepTracker("Check Available Tools")
    for tool, label, _ in TOOLS:
        tracker.add(tool, label)
    available = {tool: check_tool_for_tracker(tool, tracker) for tool, _, _ in TOOLS}
    console.print(tracker.render())

    console.print("\n[bold green]create-ledfx is ready to use![/bold green]")
    for tool, _, hint in TOOLS:
        if hint and not available[tool]:
            console.print(f"[dim]Tip: {hint}[/dim]")
    if not (available["code"] or available["code-insiders"]):
        console.print("[dim]Tip: Install VS Code to open the generated workspace[/dim]")


def main():
    app()


if __name__ == "__main__":
    main()
