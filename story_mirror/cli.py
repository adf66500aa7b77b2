"""CLI entry point: routes `mirror` subcommands to their handlers."""
from __future__ import annotations

import logging
import os
import sys

USAGE = """\
story-mirror — mirror story runs into a reporting backend

Usage:
  mirror replay <run.yaml>   Replay a run file and mirror it into the local journal
  mirror tree <run.yaml>     Dry-run a run file, print the execution tree as Mermaid
  mirror show [--logs]       Show the items of the last mirrored launch
  mirror reset               Clear the local journal

Settings are read from mirror.yaml in the working directory.
"""


def _configure_logging() -> None:
    from story_mirror.config import load_settings

    try:
        level = load_settings().log_level
    except ValueError as e:
        print(f"✗ Invalid settings: {e}", file=sys.stderr)
        sys.exit(1)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main():
    args = sys.argv[1:]
    cwd = os.getcwd()
    command = args[0] if args else None

    if command in ("replay", "tree"):
        if len(args) < 2:
            print(f"Usage: mirror {command} <run.yaml>", file=sys.stderr)
            sys.exit(1)
        _configure_logging()
        if command == "replay":
            from story_mirror.commands.replay import cmd_replay
            cmd_replay(args[1], cwd)
        else:
            from story_mirror.commands.tree import cmd_tree
            cmd_tree(args[1], cwd)

    elif command == "show":
        from story_mirror.commands.show import cmd_show
        cmd_show(cwd, with_logs="--logs" in args[1:])

    elif command == "reset":
        from story_mirror.commands.reset import cmd_reset
        cmd_reset(cwd)

    elif command in ("help", "--help", "-h", None):
        print(USAGE)

    else:
        print(f"Unknown command: {command}", file=sys.stderr)
        print(USAGE)
        sys.exit(1)
