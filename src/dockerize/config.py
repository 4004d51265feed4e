"""Process settings: Pydantic BaseSettings fed from ``DOCKERIZE_*`` env vars.

These are settings for the shim itself. The command → container mapping lives
in ``dockerize.json`` and is handled by :mod:`dockerize.mapping`.

Nested fields use ``__`` as the delimiter (e.g. ``DOCKERIZE_RUNTIME__CLI=podman``,
``DOCKERIZE_TRAMPOLINE__CONTAINER_PATH=/opt/bin/execwdve``).

Usage::

    from dockerize.config import get_settings

    s = get_settings()
    print(s.runtime.cli)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class _StrictModel(BaseModel):
    """Base for all config sub-models: reject unknown keys so typos fail loudly."""

    model_config = {"extra": "forbid"}


class RuntimeConfig(_StrictModel):
    cli: Literal["docker", "podman"] | None = None  # None → auto-detect
    tty: bool | None = None  # None → allocate a TTY when stdin is one


class TrampolineConfig(_StrictModel):
    host_path: str | None = None  # None → dockerize/trampoline.py from this install
    container_path: str = "/usr/local/bin/execwdve"
    # Runs the mounted script; empty when the image ships its own execwdve binary
    interpreter: str | None = "python3"

    def resolved_host_path(self) -> str:
        if self.host_path:
            return self.host_path
        from dockerize import trampoline

        return str(Path(trampoline.__file__).resolve())

    def command(self) -> list[str]:
        """How the trampoline is invoked inside the container."""
        if self.interpreter:
            return [self.interpreter, self.container_path]
        return [self.container_path]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DOCKERIZE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    config_filename: str = "dockerize.json"
    runtime: RuntimeConfig = RuntimeConfig()
    trampoline: TrampolineConfig = TrampolineConfig()


_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings
    _settings = None
