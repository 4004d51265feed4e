"""Upward directory walk shared by the config and version-pin lookups."""

from __future__ import annotations

from pathlib import Path

from dockerize.logger import logger


def find_upwards(
    filename: str,
    start_dir: Path | None = None,
    home: Path | str | None = None,
) -> Path | None:
    """Find *filename* in *start_dir* or any of its ancestors, else in *home*.

    The walk includes the filesystem root. Only regular files count, so a
    directory that happens to carry the name is skipped.

    Returns:
        Path to the first match, or None when neither the walk nor the home
        directory has the file.
    """
    current = (start_dir or Path.cwd()).resolve()

    for directory in (current, *current.parents):
        candidate = directory / filename
        if candidate.is_file():
            logger.debug("Found file walking upwards", filename=filename, path=str(candidate))
            return candidate

    if home is None:
        home = Path.home()
    candidate = Path(home) / filename
    if candidate.is_file():
        logger.debug("Found file in home directory", filename=filename, path=str(candidate))
        return candidate

    return None
