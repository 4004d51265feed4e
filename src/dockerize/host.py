"""Host detection and host → container translation of paths and environment.

Three host kinds matter:

- native Linux: paths and environment pass through unchanged (minus the
  POSIX exclusions),
- Windows: paths are rewritten to the POSIX form Docker Desktop accepts as a
  bind-mount source (``C:\\Users\\x`` → ``/c/Users/x``),
- WSL: a Linux binary under Windows. The runtime is proxied to the Windows
  daemon, so ``/mnt/c/...`` paths are rewritten to ``/c/...``.
"""

from __future__ import annotations

import enum
import os
import platform
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from dockerize.logger import logger


class HostKind(enum.Enum):
    NATIVE_LINUX = "linux"
    WINDOWS = "windows"
    WSL = "wsl"


# Shell internals and host-only sockets/tables. HOME is kept: the home
# directory is mounted at the same path inside the container.
POSIX_EXCLUDED_ENV: frozenset[str] = frozenset(
    {
        "_",
        "PWD",
        "OLDPWD",
        "SHLVL",
        "PATH",
        "HOSTNAME",
        "SHELL",
        "SSH_AUTH_SOCK",
        "SSH_AGENT_PID",
        "SSH_CLIENT",
        "SSH_CONNECTION",
        "SSH_TTY",
        "LS_COLORS",
        "TERMCAP",
        "DISPLAY",
        "XAUTHORITY",
        "DBUS_SESSION_BUS_ADDRESS",
        "XDG_RUNTIME_DIR",
        "XDG_SESSION_ID",
        "LD_LIBRARY_PATH",
        "LD_PRELOAD",
        "TMPDIR",
        "MAIL",
    }
)

WSL_EXCLUDED_ENV: frozenset[str] = POSIX_EXCLUDED_ENV | {
    "WSLENV",
    "WSL_DISTRO_NAME",
    "WSL_INTEROP",
    "NAME",
}

# Windows system and profile variables. Compared case-insensitively.
WINDOWS_EXCLUDED_ENV: frozenset[str] = frozenset(
    {
        "ALLUSERSPROFILE",
        "APPDATA",
        "COMMONPROGRAMFILES",
        "COMMONPROGRAMFILES(X86)",
        "COMMONPROGRAMW6432",
        "COMPUTERNAME",
        "COMSPEC",
        "DRIVERDATA",
        "HOMEDRIVE",
        "HOMEPATH",
        "LOCALAPPDATA",
        "LOGONSERVER",
        "NUMBER_OF_PROCESSORS",
        "ONEDRIVE",
        "OS",
        "PATH",
        "PATHEXT",
        "PROCESSOR_ARCHITECTURE",
        "PROCESSOR_IDENTIFIER",
        "PROCESSOR_LEVEL",
        "PROCESSOR_REVISION",
        "PROGRAMDATA",
        "PROGRAMFILES",
        "PROGRAMFILES(X86)",
        "PROGRAMW6432",
        "PROMPT",
        "PSMODULEPATH",
        "PUBLIC",
        "SESSIONNAME",
        "SYSTEMDRIVE",
        "SYSTEMROOT",
        "TEMP",
        "TMP",
        "USERDOMAIN",
        "USERDOMAIN_ROAMINGPROFILE",
        "USERNAME",
        "USERPROFILE",
        "WINDIR",
    }
)

EXCLUDED_ENV: Mapping[HostKind, frozenset[str]] = MappingProxyType(
    {
        HostKind.NATIVE_LINUX: POSIX_EXCLUDED_ENV,
        HostKind.WSL: WSL_EXCLUDED_ENV,
        HostKind.WINDOWS: WINDOWS_EXCLUDED_ENV,
    }
)

_DRIVE_RE = re.compile(r"^([A-Za-z]):(.*)$")
_WSL_MOUNT_RE = re.compile(r"^/mnt(/[A-Za-z](?:/.*)?)$")


@dataclass(frozen=True)
class HostProfile:
    kind: HostKind
    home_dir: str
    excluded_env: frozenset[str]

    def normalize_path(self, path: str) -> str:
        return normalize_path(path, self.kind)

    def filter_env(self, entries: Iterable[str]) -> list[str]:
        return filter_env(
            entries,
            self.excluded_env,
            case_insensitive=self.kind is HostKind.WINDOWS,
        )


def detect_host_kind(system: str | None = None, release: str | None = None) -> HostKind:
    """Classify the host from the OS name and kernel release."""
    system = system if system is not None else platform.system()
    if system == "Windows":
        return HostKind.WINDOWS
    if system == "Linux":
        release = release if release is not None else platform.release()
        # WSL kernels are tagged "-microsoft-standard" (WSL2) or "-Microsoft" (WSL1)
        if "microsoft" in release.lower():
            return HostKind.WSL
    return HostKind.NATIVE_LINUX


def home_directory(environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ
    if home := env.get("USERPROFILE"):
        return home
    if home := env.get("HOME"):
        return home
    return str(Path.home())


def normalize_path(path: str, kind: HostKind) -> str:
    """Rewrite a host path into a POSIX path usable as a bind-mount source.

    Idempotent: an already-normalized path comes back unchanged.
    """
    if kind is HostKind.NATIVE_LINUX:
        return path

    p = path.replace("\\", "/")
    if m := _DRIVE_RE.match(p):
        drive, rest = m.groups()
        if rest and not rest.startswith("/"):
            rest = "/" + rest
        p = f"/{drive.lower()}{rest}"
    elif kind is HostKind.WSL and (m := _WSL_MOUNT_RE.match(p)):
        p = m.group(1)
    return p


def env_name(entry: str) -> str:
    return entry.split("=", 1)[0]


def filter_env(
    entries: Iterable[str],
    excluded: Iterable[str],
    *,
    case_insensitive: bool = False,
) -> list[str]:
    """Drop ``KEY=VALUE`` entries whose name is in *excluded*, keeping order."""
    if case_insensitive:
        names = {name.upper() for name in excluded}
        return [e for e in entries if env_name(e).upper() not in names]
    names = set(excluded)
    return [e for e in entries if env_name(e) not in names]


def environ_entries(environ: Mapping[str, str] | None = None) -> list[str]:
    env = os.environ if environ is None else environ
    return [f"{key}={value}" for key, value in env.items()]


_profile: HostProfile | None = None


def detect() -> HostProfile:
    """Lazy singleton: host facts don't change during a process."""
    global _profile
    if _profile is None:
        kind = detect_host_kind()
        _profile = HostProfile(
            kind=kind,
            home_dir=home_directory(),
            excluded_env=EXCLUDED_ENV[kind],
        )
        logger.debug("Host detected", kind=kind.value, home=_profile.home_dir)
    return _profile


def reset_host_profile() -> None:
    """Clear the cached profile (for tests)."""
    global _profile
    _profile = None
