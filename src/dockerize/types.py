"""Data models for dockerize.

:class:`~dockerize.trampoline.ExecRequest` lives with the trampoline, which
has to stay importable on its own inside the container.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class VolumeMount:
    host_path: str
    container_path: str
    readonly: bool = False
