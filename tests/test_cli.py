from __future__ import annotations

import io
import json
import subprocess
import zipfile
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

import create_ledfx
from create_ledfx.cloner import CloneReport, clone_repositories
from create_ledfx.errors import CloneError

runner = CliRunner()

RELEASE = {
    "tag_name": "v1.2.0",
    "assets": [
        {
            "name": "ledfx-dev.zip",
            "browser_download_url": "https://github.com/YeonV/create-ledfx/releases/download/v1.2.0/ledfx-dev.zip",
        }
    ],
}


def _template_zip(workspace: str) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("ledfx-dev/ledfx.code-workspace", workspace)
        zf.writestr("ledfx-dev/README.md", "# ledfx-dev\n")
    return buf.getvalue()


def _mock_github(monkeypatch, *, release_status: int = 200, workspace: str | None = None) -> None:
    if workspace is None:
        workspace = json.dumps({"folders": [{"path": "frontend", "name": "[Frontend] Web + CC"}]})
    archive = _template_zip(workspace)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/releases/latest"):
            if release_status != 200:
                return httpx.Response(release_status)
            return httpx.Response(200, json=RELEASE)
        return httpx.Response(200, content=archive)

    def make_client(verify: bool = True) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)

    monkeypatch.setattr(create_ledfx, "make_client", make_client)


class FakeGit:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.clones: list[str] = []

    def __call__(self, cmd: list[str], *, cwd: Path, **_: object) -> subprocess.CompletedProcess:
        if cmd[1] == "clone":
            self.clones.append(cmd[3])
            if self.fail:
                raise subprocess.CalledProcessError(128, cmd)
            (Path(cwd) / cmd[3]).mkdir(parents=True)
        return subprocess.CompletedProcess(args=cmd, returncode=0)


@pytest.fixture
def fake_git(monkeypatch) -> FakeGit:
    git = FakeGit()

    def clone_with_fake(entries, root):
        return clone_repositories(entries, root, runner=git)

    monkeypatch.setattr(create_ledfx, "clone_repositories", clone_with_fake)
    return git


def _workspace(path: Path) -> dict:
    return json.loads((path / "ledfx.code-workspace").read_text(encoding="utf-8"))


def test_setup_with_select_clones_and_writes_workspace(tmp_path: Path, monkeypatch, fake_git: FakeGit) -> None:
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(create_ledfx.app, ["setup", "--select", "backend", "--select", "frontend"])

    assert result.exit_code == 0, result.output
    assert fake_git.clones == ["frontend", "backend"]
    data = _workspace(tmp_path)
    assert [f["path"] for f in data["folders"]] == ["frontend", "backend", "__welcome__"]
    labels = [t["label"] for t in data["tasks"]["tasks"]]
    assert "[Frontend] Start" in labels
    assert "[Visualiser] Start" not in labels


def test_setup_rerun_skips_existing_folders(tmp_path: Path, monkeypatch, fake_git: FakeGit) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "frontend").mkdir()

    result = runner.invoke(create_ledfx.app, ["setup", "-s", "frontend"])

    assert result.exit_code == 0, result.output
    assert fake_git.clones == []
    assert "already exists, skipping" in result.output


def test_setup_all_no_clone_only_writes_workspace(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)

    def unexpected(*args, **kwargs) -> CloneReport:
        raise AssertionError("clone should not run")

    monkeypatch.setattr(create_ledfx, "clone_repositories", unexpected)

    result = runner.invoke(create_ledfx.app, ["setup", "--all", "--no-clone", "--workspace-file", "custom.code-workspace"])

    assert result.exit_code == 0, result.output
    data = json.loads((tmp_path / "custom.code-workspace").read_text(encoding="utf-8"))
    assert len(data["folders"]) == len(create_ledfx.REPOSITORIES) + 1
    assert len(data["tasks"]["tasks"]) == 7


def test_setup_rejects_unknown_folder(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(create_ledfx.app, ["setup", "--select", "nope"])
    assert result.exit_code == 1
    assert "nope" in result.output
    assert not (tmp_path / "ledfx.code-workspace").exists()


def test_setup_rejects_all_with_select(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(create_ledfx.app, ["setup", "--all", "--select", "frontend"])
    assert result.exit_code == 1


def test_setup_without_tty_requires_explicit_selection(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(create_ledfx.app, ["setup"])
    assert result.exit_code == 1
    assert "TTY" in result.output


def test_setup_stops_on_clone_failure(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)

    def failing(entries, root):
        raise CloneError("frontend", "git clone failed (exit code 128)", 128)

    monkeypatch.setattr(create_ledfx, "clone_repositories", failing)

    result = runner.invoke(create_ledfx.app, ["setup", "-s", "frontend"])

    assert result.exit_code == 1
    assert "Clone Error" in result.output
    assert not (tmp_path / "ledfx.code-workspace").exists()


def test_init_installs_template(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    _mock_github(monkeypatch)

    result = runner.invoke(create_ledfx.app, ["init", "my-ledfx", "--no-setup", "--no-open"])

    assert result.exit_code == 0, result.output
    project = tmp_path / "my-ledfx"
    assert not (tmp_path / "ledfx-dev").exists()
    assert not (tmp_path / "ledfx-dev.zip").exists()
    assert [f["path"] for f in _workspace(project)["folders"]] == ["frontend", "__welcome__"]
    assert (project / "__welcome__" / "README.md").is_file()


def test_init_runs_setup_and_opens_editor(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    _mock_github(monkeypatch)
    calls: list[str] = []
    monkeypatch.setattr(create_ledfx, "run_workspace_setup", lambda path: calls.append(f"setup:{path.name}") or True)
    monkeypatch.setattr(create_ledfx, "open_in_editor", lambda path, editor: calls.append(f"{editor}:{path.name}") or True)

    result = runner.invoke(create_ledfx.app, ["init", "my-ledfx", "--editor", "codium"])

    assert result.exit_code == 0, result.output
    assert calls == ["setup:my-ledfx", "codium:ledfx.code-workspace"]


def test_init_keeps_going_when_workspace_file_is_malformed(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    _mock_github(monkeypatch, workspace="{broken")

    result = runner.invoke(create_ledfx.app, ["init", "my-ledfx", "--no-setup", "--no-open"])

    assert result.exit_code == 0, result.output
    assert "Workspace File Warning" in result.output
    assert "Manual fallback" in result.output
    assert (tmp_path / "my-ledfx" / "ledfx.code-workspace").read_text(encoding="utf-8") == "{broken"


def test_init_reports_api_failure_with_fallback(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    _mock_github(monkeypatch, release_status=403)

    result = runner.invoke(create_ledfx.app, ["init", "my-ledfx", "--no-setup", "--no-open"])

    assert result.exit_code == 1
    assert "Manual fallback" in result.output
    assert not (tmp_path / "my-ledfx").exists()
    assert not (tmp_path / "ledfx-dev.zip").exists()


def test_init_refuses_existing_target(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "my-ledfx").mkdir()
    result = runner.invoke(create_ledfx.app, ["init", "my-ledfx"])
    assert result.exit_code == 1
    assert "Directory Conflict" in result.output


def test_init_refuses_existing_staging_folder(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "ledfx-dev").mkdir()
    result = runner.invoke(create_ledfx.app, ["init", "my-ledfx"])
    assert result.exit_code == 1
    assert "Directory Conflict" in result.output
    assert (tmp_path / "ledfx-dev").is_dir()


def test_init_without_name_and_tty_aborts(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(create_ledfx.app, ["init"])
    assert result.exit_code == 1
    assert "TTY" in result.output


def test_open_in_editor_reports_missing_executable(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(create_ledfx.shutil, "which", lambda name: None)
    assert create_ledfx.open_in_editor(tmp_path / "ledfx.code-workspace", "code") is False


def test_run_workspace_setup_reports_failure(tmp_path: Path, monkeypatch) -> None:
    seen: dict[str, object] = {}

    def fake_run(cmd: list[str], **kwargs: object) -> subprocess.CompletedProcess:
        seen["cmd"] = cmd
        seen["cwd"] = kwargs.get("cwd")
        return subprocess.CompletedProcess(args=cmd, returncode=2)

    monkeypatch.setattr(create_ledfx.subprocess, "run", fake_run)

    assert create_ledfx.run_workspace_setup(tmp_path) is False
    assert seen["cmd"][-3:] == ["-m", "create_ledfx", "setup"]
    assert seen["cwd"] == tmp_path


def test_check_lists_tools(monkeypatch) -> None:
    monkeypatch.setattr(create_ledfx.shutil, "which", lambda name: "/usr/bin/git" if name == "git" else None)
    result = runner.invoke(create_ledfx.app, ["check"])
    assert result.exit_code == 0
    assert "Git version control" in result.output
    assert "Install VS Code" in result.output
    assert "Install git" not in result.output


def test_setup_reports_blocked_parent_folder_as_clone_error(tmp_path: Path, monkeypatch, fake_git: FakeGit) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "_pipeline").write_text("not a folder")

    result = runner.invoke(create_ledfx.app, ["setup", "-s", "_pipeline/tools/song_detector"])

    assert result.exit_code == 1
    assert "Clone Error" in result.output
    assert fake_git.clones == []


def test_bare_invocation_lists_commands() -> None:
    result = runner.invoke(create_ledfx.app, [])
    assert result.exit_code == 0
    assert "init" in result.output
    assert "setup" in result.output
    assert "check" in result.output


def test_download_progress_updates_tracker_on_percent_change() -> None:
    tracker = create_ledfx.StepTracker("t")
    tracker.add("download", "Download")
    updates = []
    tracker.attach_refresh(lambda: updates.append(tracker.steps["download"].detail))

    report = create_ledfx.download_progress(tracker)
    report(10, 1000)
    report(11, 1000)
    report(500, 1000)
    report(1000, 1000)
    report(5, 0)

    assert updates == ["1%", "50%", "100%"]
    assert tracker.running() == "download"
