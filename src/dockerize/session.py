"""Container sessions: route a command into its running container instance.

One instance per (container, version), named deterministically so that every
invocation finds the same one. Provisioning the instance is a precondition:
when it is missing the ``run`` command that would create it is logged, and the
exec is still attempted so the runtime reports the failure with its own status.
"""

from __future__ import annotations

import os
import re
import subprocess
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import NoReturn

from dockerize.config import get_settings
from dockerize.host import HostKind, HostProfile, detect, environ_entries
from dockerize.logger import logger
from dockerize.mapping import ContainerEntry, resolve_mapping
from dockerize.runtime import ContainerRuntime, RuntimeFailure, get_runtime
from dockerize.trampoline import ExecRequest
from dockerize.types import VolumeMount
from dockerize.version import resolve_version

KNOWN_HOSTS_TARGET = "/etc/ssh/ssh_known_hosts"

# host[:container][:ro|rw], where host may start with a Windows drive letter
_VOLUME_RE = re.compile(
    r"^(?P<host>(?:[A-Za-z]:(?=[\\/]))?[^:]+)(?::(?P<target>[^:]+))?(?::(?P<mode>ro|rw))?$"
)


class UnknownCommandError(Exception):
    """No container is registered for the requested command."""

    exit_code = 1

    def __init__(self, command: str, source: Path | None) -> None:
        self.command = command
        self.source = source
        where = str(source) if source is not None else "the built-in configuration"
        super().__init__(f"No container registered for '{command}' in {where}")


@dataclass(frozen=True)
class SessionPlan:
    """Everything resolved for one invocation, before anything is executed."""

    command: str
    container: str
    version: str
    instance: str
    source: Path | None
    request: ExecRequest
    mounts: list[VolumeMount] = field(default_factory=list)

    @property
    def image(self) -> str:
        return f"{self.container}:{self.version}"


def sanitize(container: str) -> str:
    """Make a (possibly namespaced) image name usable as a container name.

    ``/`` becomes ``__`` and a registry port separator ``:`` becomes ``_``.
    """
    return container.replace("/", "__").replace(":", "_")


def instance_name(container: str, version: str) -> str:
    return f"{sanitize(container)}_{version}"


def parse_volume(spec: str, profile: HostProfile) -> VolumeMount:
    """Turn a ``host[:container][:ro]`` volume declaration into a mount.

    Environment variables and ``~`` in the declaration are expanded first.
    Without a container path the host path is reused inside the container.
    """
    expanded = os.path.expanduser(os.path.expandvars(spec))
    m = _VOLUME_RE.match(expanded)
    if m is None:
        # Let the runtime reject it with its own message
        return VolumeMount(expanded, expanded)
    host = profile.normalize_path(m.group("host"))
    target = m.group("target") or host
    return VolumeMount(host, target, readonly=m.group("mode") == "ro")


def build_mounts(
    profile: HostProfile,
    entry: ContainerEntry,
    trampoline_host: str,
    trampoline_target: str,
) -> list[VolumeMount]:
    """Mounts a freshly provisioned instance needs.

    The home directory is mounted at the same path so absolute paths under it
    mean the same thing on both sides.
    """
    home = profile.normalize_path(profile.home_dir)
    mounts = [VolumeMount(home, home)]

    known_hosts = Path(profile.home_dir) / ".ssh" / "known_hosts"
    if known_hosts.is_file():
        mounts.append(
            VolumeMount(profile.normalize_path(str(known_hosts)), KNOWN_HOSTS_TARGET, readonly=True)
        )

    mounts.append(
        VolumeMount(profile.normalize_path(trampoline_host), trampoline_target, readonly=True)
    )

    for spec in entry.volumes:
        mounts.append(parse_volume(spec, profile))
    return mounts


def plan_session(
    command: str,
    argv: Sequence[str],
    *,
    cwd: Path | None = None,
    environ: Mapping[str, str] | None = None,
    profile: HostProfile | None = None,
) -> SessionPlan:
    """Resolve container, version, instance and exec request for *command*."""
    s = get_settings()
    profile = profile or detect()
    cwd = cwd or Path.cwd()
    home = profile.home_dir

    mapping = resolve_mapping(start_dir=cwd, home=home)
    entry = mapping.container_for(command)
    if entry is None:
        raise UnknownCommandError(command, mapping.source)

    version = resolve_version(entry.name, start_dir=cwd, home=home)
    instance = instance_name(entry.name, version)

    request = ExecRequest(
        workdir=profile.normalize_path(str(cwd)),
        command=command,
        args=tuple(argv),
        env=tuple(profile.filter_env(environ_entries(environ))),
    )
    mounts = build_mounts(
        profile,
        entry,
        trampoline_host=s.trampoline.resolved_host_path(),
        trampoline_target=s.trampoline.container_path,
    )
    logger.debug(
        "Session planned",
        command=command,
        container=entry.name,
        version=version,
        instance=instance,
    )
    return SessionPlan(
        command=command,
        container=entry.name,
        version=version,
        instance=instance,
        source=mapping.source,
        request=request,
        mounts=mounts,
    )


def exec_args(plan: SessionPlan, runtime: ContainerRuntime, tty: bool | None = None) -> list[str]:
    s = get_settings()
    if tty is None:
        tty = s.runtime.tty if s.runtime.tty is not None else sys.stdin.isatty()
    return runtime.exec_args(
        plan.instance,
        s.trampoline.command(),
        plan.request.to_argv(),
        tty=tty,
    )


def _replace_process(args: list[str], kind: HostKind) -> NoReturn:
    """Hand over to the runtime CLI; its exit status becomes ours."""
    if kind is HostKind.WINDOWS:
        # No process-image replacement on Windows: spawn, wait, mirror the status
        try:
            result = subprocess.run(args)
        except OSError as exc:
            raise RuntimeFailure(f"Can't run '{args[0]}': {exc}", exit_code=127) from exc
        sys.exit(result.returncode)

    try:
        os.execvp(args[0], args)
    except OSError as exc:
        raise RuntimeFailure(f"Can't run '{args[0]}': {exc}", exit_code=127) from exc
    raise AssertionError("os.execvp returned")  # pragma: no cover


def run(command: str, argv: Sequence[str]) -> NoReturn:
    """Execute *command* with *argv* inside its container. Never returns."""
    profile = detect()
    plan = plan_session(command, argv, profile=profile)
    runtime = get_runtime()

    if not runtime.is_instance_running(plan.instance):
        logger.warning(
            "Container instance is not running, start it first",
            instance=plan.instance,
            run=" ".join(runtime.run_args(plan.instance, plan.image, plan.mounts)),
        )

    args = exec_args(plan, runtime)
    logger.debug("Exec into instance", instance=plan.instance, args=args)
    _replace_process(args, profile.kind)
