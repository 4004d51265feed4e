"""Entry point for `dockerize` and every tool name symlinked to it.

The persona comes from the name the program was invoked under:

    go, ruby, ...           Run that command inside its container
    execwdve                In-container trampoline
    dockerize run CMD ...   Same as invoking CMD directly
    dockerize which CMD     Show container, version and instance for CMD
    dockerize config        Show the active mapping and where it came from
    dockerize provision CMD Print the command that starts CMD's instance
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

_ADMIN_PERSONAS = frozenset({"dockerize", "__main__"})
_TRAMPOLINE_PERSONA = "execwdve"
_SUFFIXES = (".exe", ".py", ".bat", ".cmd")


def persona(argv0: str) -> str:
    name = Path(argv0).name
    for suffix in _SUFFIXES:
        if name.lower().endswith(suffix):
            return name[: -len(suffix)]
    return name


def _fatal(exc: Exception) -> None:
    from dockerize.logger import logger

    logger.debug("Fatal error", error_type=type(exc).__name__, err=str(exc))
    print(f"dockerize: {exc}", file=sys.stderr)
    sys.exit(getattr(exc, "exit_code", 1))


def _run(command: str, argv: Sequence[str]) -> None:
    from dockerize.mapping import ConfigError
    from dockerize.runtime import RuntimeFailure
    from dockerize.session import UnknownCommandError, run

    try:
        run(command, argv)
    except (ConfigError, UnknownCommandError, RuntimeFailure) as exc:
        _fatal(exc)


def _which(command: str) -> None:
    from dockerize.mapping import ConfigError
    from dockerize.session import UnknownCommandError, plan_session

    try:
        plan = plan_session(command, [])
    except (ConfigError, UnknownCommandError) as exc:
        _fatal(exc)
        return

    print(f"command:   {plan.command}")
    print(f"container: {plan.container}")
    print(f"version:   {plan.version}")
    print(f"instance:  {plan.instance}")
    print(f"config:    {plan.source or 'built-in'}")


def _config() -> None:
    from dockerize.mapping import ConfigError, resolve_mapping

    try:
        mapping = resolve_mapping()
    except ConfigError as exc:
        _fatal(exc)
        return

    print(f"# {mapping.source or 'built-in'}")
    for command, container in sorted(mapping.commands.items()):
        print(f"{command}\t{container}")


def _provision(command: str) -> None:
    import shlex

    from dockerize.mapping import ConfigError
    from dockerize.runtime import get_runtime
    from dockerize.session import UnknownCommandError, plan_session

    try:
        plan = plan_session(command, [])
    except (ConfigError, UnknownCommandError) as exc:
        _fatal(exc)
        return

    args = get_runtime().run_args(plan.instance, plan.image, plan.mounts)
    print(shlex.join(args))


def admin(argv: Sequence[str]) -> None:
    parser = argparse.ArgumentParser(
        prog="dockerize",
        description="Run host commands inside their matching containers",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug details to stderr"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Run a command inside its container")
    run_p.add_argument("tool", help="Command name to route")
    run_p.add_argument("args", nargs=argparse.REMAINDER, help="Arguments for the command")

    which_p = sub.add_parser("which", help="Show where a command would run")
    which_p.add_argument("tool")

    sub.add_parser("config", help="Show the active command → container mapping")

    prov_p = sub.add_parser("provision", help="Print the command that starts an instance")
    prov_p.add_argument("tool")

    args = parser.parse_args(argv)
    if args.verbose:
        from dockerize.logger import set_level

        set_level("DEBUG")

    match args.command:
        case "run":
            _run(args.tool, args.args)
        case "which":
            _which(args.tool)
        case "config":
            _config()
        case "provision":
            _provision(args.tool)


def main(argv: Sequence[str] | None = None) -> None:
    argv = list(sys.argv if argv is None else argv)
    name = persona(argv[0]) if argv else "dockerize"

    if name == _TRAMPOLINE_PERSONA:
        from dockerize.trampoline import main as trampoline_main

        sys.exit(trampoline_main(argv[1:]))

    from dockerize.logger import bind_invocation

    bind_invocation(name)
    if name in _ADMIN_PERSONAS:
        admin(argv[1:])
        return
    _run(name, argv[1:])


if __name__ == "__main__":
    main()
