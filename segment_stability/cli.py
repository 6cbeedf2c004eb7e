#!/usr/bin/env python3
"""Segment Stability CLI - unified command-line interface for the report jobs."""

import argparse
import importlib
import pkgutil
import sys


def _discover_modules():
    """Discover runnable modules under the analyzers/processors packages.

    Returns a list of tuples: (command_name, module_object, category)
    where `command_name` is the hyphenated name used on the CLI.
    """
    found = []
    for pkg_name, category in (
        ("segment_stability.processors", "processors"),
        ("segment_stability.analyzers", "analyzers"),
    ):
        try:
            pkg = importlib.import_module(pkg_name)
        except ImportError:
            continue

        if not hasattr(pkg, "__path__"):
            continue

        for finder, name, ispkg in pkgutil.iter_modules(pkg.__path__):
            mod = importlib.import_module(f"{pkg_name}.{name}")
            # a callable `main` marks a runnable command
            if callable(getattr(mod, "main", None)):
                found.append((name.replace("_", "-"), mod, category))

    return found


def build_parser():
    parser = argparse.ArgumentParser(
        description="Segment Stability - road-segment analytics batch jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
        Examples:
            segment-stability stability-report --cityId=metro --date=2025-06-01 --dry-run
    """
    )
    subparsers = parser.add_subparsers(dest="command")

    for cmd, mod, cat in _discover_modules():
        sp = subparsers.add_parser(cmd, help=f"{cat} ({cmd})")
        if callable(getattr(mod, "register_subparser", None)):
            mod.register_subparser(sp)
        sp.set_defaults(_segment_module=mod, _segment_cmd=cmd)
    return parser


def main(argv=None):
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    args = parser.parse_args(argv)

    mod = getattr(args, "_segment_module", None)
    if mod is None:
        parser.print_help()
        return 0

    # hand the module its own argv so it parses (and validates) the flags itself
    sub_argv = argv[argv.index(args._segment_cmd) + 1:]
    try:
        return mod.main(argv=sub_argv)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 1


if __name__ == '__main__':
    sys.exit(main())
