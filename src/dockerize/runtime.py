"""Container runtime CLI adapter: Docker or Podman.

Detects which container CLI to use and builds/executes the three commands the
shim needs: the exact-name instance query, ``exec`` into an instance and the
``run`` command that would provision a missing instance.
"""

from __future__ import annotations

import re
import shutil
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from dockerize.config import get_settings
from dockerize.logger import logger
from dockerize.types import VolumeMount


class RuntimeFailure(Exception):
    """The runtime CLI could not be spawned or reported an error.

    ``exit_code`` is the runtime's own status so it can be passed through.
    """

    def __init__(self, message: str, exit_code: int) -> None:
        self.exit_code = exit_code
        super().__init__(message)


@dataclass(frozen=True)
class ContainerRuntime:
    """Detected container runtime (Docker or Podman: same CLI surface)."""

    name: Literal["docker", "podman"]
    cli: str  # "docker" or "podman"

    def is_instance_running(self, instance: str) -> bool:
        """Check for a running container named exactly *instance*.

        Present iff the first line of the filtered ``ps`` output is non-empty.
        """
        name_filter = f"name=^{re.escape(instance)}$"
        args = [self.cli, "ps", "--filter", name_filter, "--format", "{{.Names}}"]
        try:
            result = subprocess.run(args, capture_output=True, text=True)
        except OSError as exc:
            raise RuntimeFailure(f"Can't run '{self.cli}': {exc}", exit_code=127) from exc

        if result.returncode != 0:
            stderr = result.stderr.strip()
            raise RuntimeFailure(
                f"'{self.cli} ps' failed: {stderr or f'exit status {result.returncode}'}",
                exit_code=result.returncode,
            )

        lines = result.stdout.splitlines()
        return bool(lines and lines[0].strip())

    def exec_args(
        self,
        instance: str,
        trampoline: Sequence[str],
        request_argv: Sequence[str],
        *,
        tty: bool,
    ) -> list[str]:
        """Build ``<cli> exec`` args running the trampoline inside *instance*."""
        args = [self.cli, "exec", "-i"]
        if tty:
            args.append("-t")
        args.append(instance)
        args.extend(trampoline)
        args.extend(request_argv)
        return args

    def run_args(self, instance: str, image: str, mounts: Sequence[VolumeMount]) -> list[str]:
        """Build ``<cli> run`` args that would provision *instance*.

        The instance idles so that later ``exec`` calls can reuse it.
        """
        args = [self.cli, "run", "-d", "--name", instance]
        for m in mounts:
            if m.readonly:
                args.extend(
                    [
                        "--mount",
                        f"type=bind,source={m.host_path},target={m.container_path},readonly",
                    ]
                )
            else:
                args.extend(["-v", f"{m.host_path}:{m.container_path}"])
        args.extend(["--entrypoint", "sleep", image, "infinity"])
        return args


def detect_runtime() -> ContainerRuntime:
    """Detect the container runtime to use.

    Priority: DOCKERIZE_RUNTIME__CLI → docker on PATH → podman on PATH → docker.
    """
    override = get_settings().runtime.cli
    if override == "podman":
        return ContainerRuntime(name="podman", cli="podman")
    if override == "docker":
        return ContainerRuntime(name="docker", cli="docker")

    if shutil.which("docker"):
        return ContainerRuntime(name="docker", cli="docker")
    if shutil.which("podman"):
        return ContainerRuntime(name="podman", cli="podman")

    # Nothing found: let the spawn fail with a clear message later
    return ContainerRuntime(name="docker", cli="docker")


_runtime: ContainerRuntime | None = None


def get_runtime() -> ContainerRuntime:
    """Lazy singleton: caches the result of detect_runtime()."""
    global _runtime  # noqa: PLW0603
    if _runtime is None:
        _runtime = detect_runtime()
        logger.debug("Container runtime detected", name=_runtime.name, cli=_runtime.cli)
    return _runtime


def reset_runtime() -> None:
    """Clear the cached runtime (for tests)."""
    global _runtime  # noqa: PLW0603
    _runtime = None
