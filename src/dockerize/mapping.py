"""Command → container mapping, loaded from ``dockerize.json``.

The file is keyed by container because that is convenient to write::

    {
      "containers": {
        "golang": {"commands": ["go", "gofmt"]},  // comments are allowed
        "ruby": {"commands": ["ruby", "gem"], "volumes": ["$HOME/.gem:/root/.gem"]}
      }
    }

Lookups go the other way, so loading builds a ``command → container`` index.
When two containers list the same command, the one registered last wins.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from pydantic import BaseModel, ValidationError, field_validator

from dockerize.config import get_settings
from dockerize.logger import logger
from dockerize.lookup import find_upwards
from dockerize.version import short_name

DEFAULT_CONFIG = """\
{
  "containers": {
    "golang": {"commands": ["go", "gofmt"]},
    "ruby": {"commands": ["ruby", "gem", "bundle", "irb", "rake"]},
    "node": {"commands": ["node", "npm", "npx"]},  // yarn needs its own image
    "python": {"commands": ["python", "python3", "pip", "pip3"]}
  }
}
"""


class ConfigError(Exception):
    """Raised when the mapping file can't be read, parsed or validated."""

    exit_code = 1

    def __init__(self, source: Path | None, reason: str) -> None:
        self.source = source
        self.reason = reason
        where = str(source) if source is not None else "built-in configuration"
        super().__init__(f"Invalid config in {where}: {reason}")


# ---------------------------------------------------------------------------
# File schema
# ---------------------------------------------------------------------------


class ContainerOptions(BaseModel):
    model_config = {"extra": "ignore"}

    commands: list[str] = []
    volumes: list[str] = []


class DockerizeFile(BaseModel):
    """Top-level file shape.

    Unknown keys, here and per container, are ignored and logged at debug so
    files carrying options for newer releases still load.
    """

    model_config = {"extra": "ignore"}

    containers: dict[str, ContainerOptions] = {}

    @field_validator("containers")
    @classmethod
    def _untagged_names(
        cls, containers: dict[str, ContainerOptions]
    ) -> dict[str, ContainerOptions]:
        # The tag is the resolved version, so it can't also be part of the key
        for name in containers:
            if ":" in name.rsplit("/", 1)[-1]:
                raise ValueError(
                    f"container '{name}' carries a tag; pin versions with a "
                    f"'.{short_name(name)}-version' file instead"
                )
        return containers


def _log_ignored_keys(raw: object, source: Path | None) -> None:
    if not isinstance(raw, dict):
        return
    where = str(source) if source is not None else "built-in"
    for key in raw.keys() - DockerizeFile.model_fields.keys():
        logger.debug("Ignoring unknown config key", key=key, source=where)
    containers = raw.get("containers")
    if not isinstance(containers, dict):
        return
    for name, options in containers.items():
        if isinstance(options, dict):
            for key in options.keys() - ContainerOptions.model_fields.keys():
                logger.debug(
                    "Ignoring unknown container option", container=name, key=key, source=where
                )


# ---------------------------------------------------------------------------
# Loaded mapping
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContainerEntry:
    name: str
    commands: frozenset[str] = frozenset()
    volumes: tuple[str, ...] = ()


@dataclass(frozen=True)
class CommandMapping:
    """Containers in file order plus the derived ``command → container`` index."""

    entries: tuple[ContainerEntry, ...]
    source: Path | None = None  # None → built-in default
    _index: Mapping[str, ContainerEntry] = field(default_factory=dict, repr=False)

    @classmethod
    def from_file_model(cls, model: DockerizeFile, source: Path | None = None) -> CommandMapping:
        entries: list[ContainerEntry] = []
        index: dict[str, ContainerEntry] = {}
        for name, options in model.containers.items():
            entry = ContainerEntry(
                name=name,
                commands=frozenset(options.commands),
                volumes=tuple(options.volumes),
            )
            entries.append(entry)
            # Later registrations overwrite earlier ones
            for command in options.commands:
                if command in index and index[command].name != name:
                    logger.debug(
                        "Command registered twice, last wins",
                        command=command,
                        previous=index[command].name,
                        container=name,
                    )
                index[command] = entry
        return cls(entries=tuple(entries), source=source, _index=MappingProxyType(index))

    @property
    def commands(self) -> Mapping[str, str]:
        """Read-only ``command → container name`` view."""
        return MappingProxyType({cmd: entry.name for cmd, entry in self._index.items()})

    def container_for(self, command: str) -> ContainerEntry | None:
        return self._index.get(command)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def strip_comments(text: str) -> str:
    """Remove ``//`` comments that run to the end of a line.

    A ``//`` inside a string literal (URLs, volume specs) is left alone.
    """
    out: list[str] = []
    for line in text.splitlines(keepends=True):
        in_string = False
        escaped = False
        cut = None
        for i, ch in enumerate(line):
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "/" and line.startswith("//", i):
                cut = i
                break
        if cut is None:
            out.append(line)
        else:
            newline = "\n" if line.endswith("\n") else ""
            out.append(line[:cut].rstrip() + newline)
    return "".join(out)


def parse_mapping(text: str, source: Path | None = None) -> CommandMapping:
    """Parse mapping file content (comments allowed) into a CommandMapping."""
    try:
        raw = json.loads(strip_comments(text))
    except json.JSONDecodeError as exc:
        raise ConfigError(source, f"malformed JSON: {exc}") from exc

    try:
        model = DockerizeFile.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(source, str(exc)) from exc

    _log_ignored_keys(raw, source)
    return CommandMapping.from_file_model(model, source=source)


def load_mapping(path: Path) -> CommandMapping:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(path, f"unreadable: {exc}") from exc
    return parse_mapping(text, source=path)


def resolve_mapping(start_dir: Path | None = None, home: Path | str | None = None) -> CommandMapping:
    """Locate the nearest mapping file and load it.

    Search order: *start_dir* and its ancestors, then the home directory, then
    the built-in default.
    """
    filename = get_settings().config_filename
    path = find_upwards(filename, start_dir=start_dir, home=home)
    if path is None:
        logger.debug("No config file found, using built-in default", filename=filename)
        return parse_mapping(DEFAULT_CONFIG)

    logger.debug("Loading config", path=str(path))
    return load_mapping(path)
