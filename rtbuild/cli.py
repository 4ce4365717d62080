# SPDX-License-Identifier: MIT
"""Command-line interface for rtbuild."""

from __future__ import annotations

import argparse
import logging
import re
import sys
from pathlib import Path

from rtbuild.configure.assemble import DEFAULT_GOALS, assemble_solution
from rtbuild.configure.config import BuildConfig
from rtbuild.core.context import BuildContext
from rtbuild.core.errors import RtbuildError
from rtbuild.core.platform import lookup, platform_for, set_target_platform
from rtbuild.executor import Executor
from rtbuild.generators import (
    MakefileGenerator,
    NMakeGenerator,
    VisualStudio2015Generator,
    VisualStudioGenerator,
)

logger = logging.getLogger("rtbuild")


_ASSIGNMENT_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_-]*)=(.*)", re.DOTALL)


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Send rtbuild's log records to stderr.

    Warnings and errors are always shown; ``verbose`` adds progress
    messages and ``debug`` adds every record, tagged with its logger.
    """
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    fmt = "%(levelname)s: %(name)s: %(message)s" if debug else "%(levelname)s: %(message)s"
    logging.basicConfig(level=level, format=fmt)


def parse_variables(args: list[str]) -> tuple[dict[str, str], list[str]]:
    """Split configuration overrides from target names.

    ``NAME=value`` arguments become overrides; the value may itself
    contain '='. Anything else, options included, is returned in order.

    Returns:
        (overrides, remaining arguments)
    """
    variables: dict[str, str] = {}
    remaining: list[str] = []
    for arg in args:
        match = _ASSIGNMENT_RE.fullmatch(arg)
        if match:
            variables[match.group(1)] = match.group(2)
        else:
            remaining.append(arg)
    return variables, remaining


def load_config(args: argparse.Namespace) -> tuple[BuildConfig, list[str]]:
    """Load the configuration named on the command line.

    Returns:
        The configuration and the arguments that were not KEY=value.
    """
    variables, remaining = parse_variables(getattr(args, "extra", []))
    config_path = Path(args.config) if args.config else None
    return BuildConfig.load(config_path, variables), remaining


def create_context(config: BuildConfig) -> BuildContext:
    """Resolve the target platform and the toolset of a configuration."""
    platform = lookup(config.os_id) if config.os_id else platform_for(config.os_base)
    set_target_platform(platform)
    return BuildContext.from_toolset(platform, config.toolset)


def cmd_build(args: argparse.Namespace) -> int:
    """Build targets directly.

    Without targets, the boot files are generated and the application
    and its dynamic extensions are built (see DEFAULT_GOALS).
    """
    config, targets = load_config(args)
    context = create_context(config)
    solution = assemble_solution(config, context.platform)

    build_dir = Path(args.build_dir)
    build_dir.mkdir(parents=True, exist_ok=True)
    executor = Executor(
        context,
        jobs=args.jobs,
        keep_going=args.keep_going,
        root=build_dir,
    )
    report = executor.run(solution, targets or list(DEFAULT_GOALS))
    if not report.ok:
        logger.error("Build failed: %s", ", ".join(report.failed))
        return report.exit_status
    logger.info("Build succeeded")
    return 0


def _create_generator(target: str, context: BuildContext, config: BuildConfig):
    if target == "makefile":
        return MakefileGenerator(context), "makefile"
    if target == "nmake":
        return NMakeGenerator(context), "makefile"
    debug = config.debug in (True, "symbols", "sanitize")
    x86 = context.platform.os_name.endswith("x86")
    if target == "visual-studio":
        return VisualStudioGenerator(context, debug=debug, x86=x86), ""
    if target == "vs2015":
        return VisualStudio2015Generator(context, debug=debug, x86=x86), ""
    raise RtbuildError(f"'{target}' does not generate build files")


def cmd_generate(args: argparse.Namespace) -> int:
    """Generate build files for the configured (or given) target."""
    config, _ = load_config(args)
    target = args.target or config.target
    if target == "execution":
        target = "makefile"
    context = create_context(config)
    solution = assemble_solution(config, context.platform)

    generator, filename = _create_generator(target, context, config)
    build_dir = Path(args.build_dir)
    path = build_dir / filename if filename else build_dir
    for written in generator.generate(path, solution):
        print(written)
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    """Show the platform, the tools and the targets of a configuration."""
    config, _ = load_config(args)
    context = create_context(config)
    solution = assemble_solution(config, context.platform)

    platform = context.platform
    print(f"Platform: {platform.os_name} ({platform.os_id}, {platform.os_base.value})")
    print(f"Compiler: {context.compiler.name} ({context.compiler.executable})")
    print(f"Linker: {context.linker.name} ({context.linker.executable})")
    print()
    print("Targets:")
    for name in solution.build_order():
        deps = solution.dependencies_of(name)
        suffix = f" <- {', '.join(deps)}" if deps else ""
        print(f"  {name}{suffix}")
    return 0


def cmd_default(args: argparse.Namespace) -> int:
    """Default command: build or generate, as the configuration's target says."""
    config, _ = load_config(args)
    if config.target == "execution":
        return cmd_build(args)
    args.target = config.target
    return cmd_generate(args)


def add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add common arguments to a parser."""
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--debug", action="store_true", help="Debug output")
    parser.add_argument(
        "-B", "--build-dir", default=".", help="Build directory (default: .)"
    )
    parser.add_argument("-c", "--config", help="Configuration file (TOML)")


def add_build_args(parser: argparse.ArgumentParser) -> None:
    """Add arguments for direct builds."""
    parser.add_argument(
        "-j", "--jobs", type=int, default=1, help="Number of parallel compile jobs"
    )
    parser.add_argument(
        "-k",
        "--keep-going",
        action="store_true",
        help="Keep building independent targets after a failure",
    )


COMMANDS = ("run", "build", "generate", "info")


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser of the rtbuild command."""
    parser = argparse.ArgumentParser(
        prog="rtbuild",
        description="Build the runtime directly or generate its build files.",
        epilog="Run 'rtbuild <command> --help' for command-specific help.",
    )
    from rtbuild import __version__

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # rtbuild run (the default command)
    run = subparsers.add_parser(
        "run", help="Build or generate, as the configuration's target says"
    )
    add_common_args(run)
    add_build_args(run)
    run.add_argument(
        "extra", nargs="*", help="Configuration overrides (KEY=value) or targets"
    )
    run.set_defaults(func=cmd_default, target=None)

    # rtbuild build
    build = subparsers.add_parser("build", help="Build targets directly")
    add_common_args(build)
    add_build_args(build)
    build.add_argument(
        "extra", nargs="*", help="Configuration overrides (KEY=value) or targets"
    )
    build.set_defaults(func=cmd_build)

    # rtbuild generate
    generate = subparsers.add_parser("generate", help="Generate build files")
    add_common_args(generate)
    generate.add_argument(
        "-t",
        "--target",
        choices=["makefile", "nmake", "visual-studio", "vs2015"],
        help="Build file format (default: from the configuration)",
    )
    generate.add_argument("extra", nargs="*", help="Configuration overrides (KEY=value)")
    generate.set_defaults(func=cmd_generate)

    # rtbuild info
    info = subparsers.add_parser("info", help="Show platform, tools and targets")
    add_common_args(info)
    info.add_argument("extra", nargs="*", help="Configuration overrides (KEY=value)")
    info.set_defaults(func=cmd_info)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the rtbuild CLI.

    Without a command, ``run`` is assumed, so ``rtbuild -j 4 debug=true``
    builds or generates as the configuration says.
    """
    args_list = sys.argv[1:] if argv is None else list(argv)
    if not args_list or (
        args_list[0] not in COMMANDS
        and args_list[0] not in ("-h", "--help", "--version")
    ):
        args_list.insert(0, "run")

    parser = build_parser()
    args = parser.parse_args(args_list)
    setup_logging(args.verbose, args.debug)

    try:
        result: int = args.func(args)
    except RtbuildError as e:
        logger.error("%s", e)
        return 1
    return result


if __name__ == "__main__":
    sys.exit(main())
