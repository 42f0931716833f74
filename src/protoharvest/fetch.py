"""Source acquisition — git clone the repositories holding the protos.

Security requirements:
- shell=False always (no command injection).
- URL scheme whitelist: https://, http://, git@ only.
- Credentials embedded in URLs are stripped from error output.

A dependency entry may carry a subdirectory after ``;``
(``https://host/repo;protos``); only the part before ``;`` is cloned.
"""

from __future__ import annotations

import re
import subprocess
import urllib.parse
from collections.abc import Sequence
from pathlib import Path

from protoharvest.errors import FetchError

# URL schemes that are allowed for remote git repositories.
_ALLOWED_SCHEMES = {"https", "http"}
_GIT_SSH_PREFIX = "git@"

# Regex to sanitise clone URLs in error messages (strip credentials).
_CRED_RE = re.compile(r"(https?://)([^@/]+@)", re.IGNORECASE)


def _sanitise_url(url: str) -> str:
    """Remove embedded credentials from a URL for safe error messages."""
    return _CRED_RE.sub(r"\1***@", url)


def repo_url(dep: str) -> str:
    """Return the clonable URL of a dependency entry."""
    return dep.split(";", 1)[0]


def clone_target(directory: Path, dep: str) -> Path:
    """Directory a dependency is cloned into: ``<directory>/<basename(url)>``."""
    name = repo_url(dep).rstrip("/").split("/")[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return Path(directory) / name


def _validate_url(url: str) -> None:
    """Raise FetchError if *url* uses a disallowed scheme."""
    if url.startswith(_GIT_SSH_PREFIX):
        return
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        raise FetchError(
            f"Unsupported URL scheme '{parsed.scheme}' in '{_sanitise_url(url)}'. "
            f"Allowed: https://, http://, git@"
        )


def fetch_dependencies(directory: Path, deps: Sequence[str]) -> list[Path]:
    """Clone every repository in *deps* into *directory*.

    Targets that already exist are left untouched — no fetch, no update.

    Returns:
        Clone directories, in the order of *deps*.

    Raises:
        FetchError: If a URL is not allowed or ``git clone`` fails.
    """
    directory = Path(directory)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FetchError(f"Cannot create '{directory}': {exc}") from exc

    targets: list[Path] = []
    for dep in deps:
        url = repo_url(dep)
        target = clone_target(directory, dep)
        targets.append(target)
        if target.exists():
            continue
        _validate_url(url)
        _clone(url, target)
    return targets


def _clone(url: str, target: Path) -> None:
    try:
        subprocess.run(
            ["git", "clone", "--", url, str(target)],
            shell=False,
            check=True,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        raise FetchError("git not found on PATH") from None
    except subprocess.CalledProcessError as exc:
        stderr_safe = _sanitise_url(exc.stderr or "")
        raise FetchError(
            f"git clone failed for {_sanitise_url(url)}: {stderr_safe}"
        ) from None


def commit_hash(path: Path) -> str:
    """Return the HEAD commit of the clone at *path*.

    Raises:
        FetchError: If *path* is not a git checkout.
    """
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=path,
            shell=False,
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        raise FetchError(f"Cannot read commit of '{path}': {exc}") from None
    return result.stdout.strip()
