"""Fetching and unpacking the ``ledfx-dev.zip`` workspace template from GitHub releases."""

import os
import ssl
import zipfile
from pathlib import Path
from typing import Callable

import httpx
import truststore

from .errors import ReleaseError

DEFAULT_RELEASE_REPO = "YeonV/create-ledfx"
ASSET_NAME = "ledfx-dev.zip"
USER_AGENT = "create-ledfx-installer"
MAX_REDIRECTS = 5

ssl_context = truststore.SSLContext(ssl.PROTOCOL_TLS_CLIENT)


def _github_token(cli_token: str | None = None) -> str | None:
    """Return sanitized GitHub token (cli arg takes precedence) or None."""
    return ((cli_token or os.getenv("GH_TOKEN") or os.getenv("GITHUB_TOKEN") or "").strip()) or None


def _github_headers(cli_token: str | None = None) -> dict:
    """Return the User-Agent header plus Authorization when a non-empty token exists."""
    headers = {"User-Agent": USER_AGENT}
    token = _github_token(cli_token)
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def make_client(verify: bool = True) -> httpx.Client:
    return httpx.Client(
        verify=ssl_context if verify else False,
        follow_redirects=True,
        max_redirects=MAX_REDIRECTS,
    )


def release_api_url(repo: str = DEFAULT_RELEASE_REPO) -> str:
    return f"https://api.github.com/repos/{repo}/releases/latest"


def fetch_latest_release(client: httpx.Client, repo: str = DEFAULT_RELEASE_REPO, *, github_token: str | None = None, debug: bool = False) -> dict:
    api_url = release_api_url(repo)
    response = client.get(api_url, timeout=30, headers=_github_headers(github_token))
    status = response.status_code
    if status == 403:
        raise ReleaseError(
            "GitHub API rate limit exceeded (HTTP 403). Try again in an hour or "
            "authenticate with --github-token / GH_TOKEN."
        )
    if status != 200:
        msg = f"GitHub API returned {status} for {api_url}"
        if debug:
            msg += f"\nResponse headers: {response.headers}\nBody (truncated 500): {response.text[:500]}"
        raise ReleaseError(msg)
    try:
        release = response.json()
    except ValueError as je:
        raise ReleaseError(f"Could not parse GitHub release JSON data: {je}\nRaw (truncated 400): {response.text[:400]}")
    if not isinstance(release, dict):
        raise ReleaseError("Unexpected release JSON: expected an object")
    return release


def find_release_asset(release: dict, name: str = ASSET_NAME) -> dict:
    assets = release.get("assets") or []
    if not isinstance(assets, list):
        raise ReleaseError(f"Unexpected release JSON: 'assets' is {type(assets).__name__}, expected a list")
    assets = [a for a in assets if isinstance(a, dict)]
    for asset in assets:
        if asset.get("name") == name and isinstance(asset.get("browser_download_url"), str):
            return asset
    available = ", ".join(str(a.get("name", "?")) for a in assets) or "(no assets)"
    raise ReleaseError(f"No {name} found in latest release. Available assets: {available}")


def download_asset(
    client: httpx.Client,
    url: str,
    dest: Path,
    *,
    github_token: str | None = None,
    on_progress: Callable[[int, int], None] | None = None,
) -> Path:
    """Stream ``url`` to ``dest``. A partially written file is removed on failure.

    ``on_progress(downloaded, total)`` is called after every chunk; ``total``
    is 0 when the server sends no content length.
    """
    try:
        with client.stream("GET", url, timeout=60, headers=_github_headers(github_token)) as response:
            if response.status_code != 200:
                raise ReleaseError(f"Failed to download zip: {response.status_code}")
            total_size = int(response.headers.get("content-length", 0))
            downloaded = 0
            with open(dest, "wb") as f:
                for chunk in response.iter_bytes(chunk_size=8192):
                    f.write(chunk)
                    downloaded += len(chunk)
                    if on_progress:
                        on_progress(downloaded, total_size)
    except httpx.TooManyRedirects as e:
        dest.unlink(missing_ok=True)
        raise ReleaseError("Too many redirects while downloading.") from e
    except Exception:
        dest.unlink(missing_ok=True)
        raise
    return dest


def extract_archive(zip_path: Path, dest: Path) -> list[str]:
    """Extract ``zip_path`` into ``dest`` and delete the archive; returns the archive's entry names."""
    try:
        with zipfile.ZipFile(zip_path, "r") as zip_ref:
            names = zip_ref.namelist()
            zip_ref.extractall(dest)
    except zipfile.BadZipFile as e:
        raise ReleaseError(f"Could not extract {zip_path.name}: {e}") from e
    finally:
        zip_path.unlink(missing_ok=True)
    return names
