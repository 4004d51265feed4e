#!/usr/bin/env python3
"""execwdve: the in-container entrypoint.

Usage::

    execwdve [<env>=<val>]... <workdir> <cmd> [<args>]...

Adds the environment assignments to its own environment, changes to
*workdir* and replaces itself with *cmd*.

This file is bind-mounted into containers that don't have dockerize
installed, so it must only import from the standard library.
"""

from __future__ import annotations

import os
import shutil
import sys
from collections.abc import Sequence
from dataclasses import dataclass

USAGE = "Usage: execwdve [<env>=<val>]... <workdir> <cmd> [<args>]..."

# No command is a usage error but deliberately not a failure status
EXIT_USAGE = 0
EXIT_CHDIR_FAILED = 2
EXIT_EXEC_FAILED = 126
EXIT_NOT_FOUND = 127

ONLCR_SWITCH = "-onlcr"


@dataclass(frozen=True)
class ExecRequest:
    """What crosses the host → container boundary.

    On the wire it is the trampoline's argument vector::

        [KEY=VALUE]... <workdir> <command> [<args>]...
    """

    workdir: str
    command: str
    args: tuple[str, ...] = ()
    env: tuple[str, ...] = ()

    def to_argv(self) -> list[str]:
        return [*self.env, self.workdir, self.command, *self.args]

    @classmethod
    def parse(cls, argv: Sequence[str]) -> ExecRequest | None:
        """Inverse of :meth:`to_argv`.

        Arguments containing ``=`` are env assignments until the first one
        that doesn't, which is the workdir. Everything after the workdir is the
        command vector and is never inspected for ``=``.

        Returns None when there is no command after the workdir.
        """
        env: list[str] = []
        workdir: str | None = None
        rest: list[str] = []
        for arg in argv:
            if workdir is None:
                if "=" in arg:
                    env.append(arg)
                else:
                    workdir = arg
            else:
                rest.append(arg)
        if workdir is None or not rest:
            return None
        return cls(workdir=workdir, command=rest[0], args=tuple(rest[1:]), env=tuple(env))


def _fail(message: str, code: int) -> int:
    print(f"execwdve: {message}", file=sys.stderr)
    return code


def enable_onlcr(fd: int) -> None:
    """Turn on NL → CR-NL translation for the terminal on *fd*.

    ``docker exec -t`` can leave the pty with output post-processing off.
    Does nothing when *fd* is not a terminal or termios is unavailable.
    """
    try:
        import termios
    except ImportError:
        return
    try:
        attrs = termios.tcgetattr(fd)
        attrs[1] |= termios.ONLCR
        termios.tcsetattr(fd, termios.TCSANOW, attrs)
    except (termios.error, OSError):
        return


def split_switches(argv: Sequence[str]) -> tuple[list[str], bool]:
    """Remove ``-onlcr`` switches from the environment stage of *argv*."""
    remaining: list[str] = []
    onlcr = False
    in_env_stage = True
    for arg in argv:
        if in_env_stage and "=" not in arg:
            if arg == ONLCR_SWITCH:
                onlcr = True
                continue
            in_env_stage = False
        remaining.append(arg)
    return remaining, onlcr


def merge_env(base: dict[str, str], assignments: Sequence[str]) -> dict[str, str]:
    env = dict(base)
    for assignment in assignments:
        key, _, value = assignment.partition("=")
        env[key] = value
    return env


def resolve_executable(command: str, env: dict[str, str]) -> str | None:
    if "/" in command:
        return command
    return shutil.which(command, path=env.get("PATH", os.environ.get("PATH", os.defpath)))


def main(argv: Sequence[str] | None = None) -> int:
    """Returns an exit status only when the exec didn't happen."""
    args, onlcr = split_switches(sys.argv[1:] if argv is None else argv)
    if onlcr:
        enable_onlcr(sys.stdout.fileno())

    request = ExecRequest.parse(args)
    if request is None:
        print(USAGE, file=sys.stderr)
        return EXIT_USAGE

    try:
        os.chdir(request.workdir)
    except OSError as exc:
        return _fail(
            f"Can't change to working directory '{request.workdir}': {exc}", EXIT_CHDIR_FAILED
        )

    env = merge_env(dict(os.environ), request.env)
    executable = resolve_executable(request.command, env)
    if executable is None:
        return _fail(f"Can't find '{request.command}' in the path", EXIT_NOT_FOUND)

    try:
        os.execve(executable, [request.command, *request.args], env)
    except OSError as exc:
        return _fail(f"Can't execute '{executable}': {exc}", EXIT_EXEC_FAILED)
    return EXIT_EXEC_FAILED  # pragma: no cover


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
