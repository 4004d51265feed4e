"""Per-project version pins (``.ruby-version``, ``.golang-version``, ...)."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from dockerize.logger import logger
from dockerize.lookup import find_upwards

DEFAULT_VERSION = "latest"


@dataclass(frozen=True)
class VersionPin:
    container: str
    version: str = DEFAULT_VERSION


def short_name(container: str) -> str:
    """``my/registry/ruby:slim`` → ``ruby``."""
    return container.rsplit("/", 1)[-1].split(":", 1)[0]


def pin_filename(container: str) -> str:
    return f".{short_name(container)}-version"


def parse_pin(content: str, container: str) -> str:
    """Extract the version from pin file content.

    Only the first line counts. A ``<name>-`` prefix is dropped so one file
    can be shared with tools that expect ``ruby-2.7.1``.
    """
    lines = content.splitlines()
    first = lines[0].rstrip() if lines else ""
    for prefix in (f"{container}-", f"{short_name(container)}-"):
        if first.startswith(prefix):
            first = first[len(prefix) :]
            break
    return first or DEFAULT_VERSION


def resolve_pin(
    container: str,
    start_dir: Path | None = None,
    home: Path | str | None = None,
) -> VersionPin:
    path = find_upwards(pin_filename(container), start_dir=start_dir, home=home)
    if path is None:
        return VersionPin(container=container)

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("Unreadable version file, using latest", path=str(path), err=str(exc))
        return VersionPin(container=container)

    version = parse_pin(content, container)
    logger.debug("Version pinned", container=container, version=version, path=str(path))
    return VersionPin(container=container, version=version)


def resolve_version(
    container: str,
    start_dir: Path | None = None,
    home: Path | str | None = None,
) -> str:
    return resolve_pin(container, start_dir=start_dir, home=home).version
