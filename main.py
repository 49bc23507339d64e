#!/usr/bin/env python3
"""
lmsp - manipulate LEGO Education EV3 Classroom (LMSP) files

Main entry point for the lmsp command line tool. EV3 Classroom does not allow
block copying between projects, which makes it hard to maintain a library of
common My Blocks shared among several projects. The copy and sync commands
merge stacks from a source project into a target project, bringing along every
variable, list, broadcast and procedure they use.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from lmsp import __version__
from lmsp.commands import copy_stacks, export_json, export_svg, list_stacks, sync_stacks
from lmsp.config import configure, get_config
from lmsp.errors import LMSPError
from lmsp.importers import SUPPORTED_SUFFIXES


def setup_logging(verbose: bool = False):
    """Configure logging for the application."""
    config = get_config()
    level_name = "DEBUG" if verbose else config.get("logging.level", "INFO")
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    format_str = config.get("logging.format", "%(levelname)s: %(message)s")

    # stdout carries command output (json, svg), log records go to stderr
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_filename:
        handlers.append(logging.FileHandler(config.log_filename))

    logging.basicConfig(level=level, format=format_str, handlers=handlers, force=True)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="lmsp",
        description="lmsp - manipulate LEGO Education EV3 Classroom (LMSP) files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
The copy and sync commands take stacks from the source file and merge them
with stacks in the target file by either copying or replacing. All necessary
variables, lists, broadcasts and procedures (My Blocks) are merged as well.

                         source -> target => output

If the output file exists, the original is kept as a *.bak file. The source,
target and output can be LMSP or JSON files; LMSP output needs an LMSP target.

Stack ids are either the numeric index printed by the list command, or a full
or partial (prefix) stack name. A procedure is named by its proccode (block
name with %s placeholders); another stack is named by {name} in the comment
attached to its first block.

Examples:
  lmsp list robot.lmsp                              # List stacks with their indexes
  lmsp copy library.lmsp robot.lmsp out.lmsp 3 "drive %s"
  lmsp sync library.lmsp robot.lmsp robot.lmsp      # Update every shared stack
        """
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to a YAML configuration file (default: lmsp.yaml)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log debug details"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"lmsp {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="command")
    subparsers.required = True

    list_parser = subparsers.add_parser("list", help="List top level stacks, used to identify copy targets")
    list_parser.add_argument("file", help="LMSP or JSON project")

    json_parser = subparsers.add_parser("json", help="Print the JSON project to standard output")
    json_parser.add_argument("file", help="LMSP or JSON project")

    svg_parser = subparsers.add_parser("svg", help="Print the project icon to standard output")
    svg_parser.add_argument("file", help="LMSP project")

    copy_parser = subparsers.add_parser("copy", help="Copy stacks by index or name")
    copy_parser.add_argument("source", help="Project to copy from")
    copy_parser.add_argument("target", help="Project to copy into")
    copy_parser.add_argument("output", help="Where to write the merged project")
    copy_parser.add_argument("stack_ids", nargs="+", metavar="stack-id", help="Stack index or name")

    sync_parser = subparsers.add_parser("sync", help="Copy every stack that also exists in the target")
    sync_parser.add_argument("source", help="Project to copy from")
    sync_parser.add_argument("target", help="Project to copy into")
    sync_parser.add_argument("output", help="Where to write the merged project")

    args = parser.parse_args(argv)
    validate_arguments(parser, args)
    return args


def validate_arguments(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    """Check file parameters, exiting with a usage error when one is invalid."""

    def check(name: str, value: str, suffixes=SUPPORTED_SUFFIXES, exists: bool = True):
        if Path(value).suffix.lower() not in suffixes:
            parser.error(f"Invalid value {value} for parameter {name}. The file must be {' or '.join('*' + s for s in suffixes)}")
        if exists and not Path(value).exists():
            parser.error(f"Invalid value {value} for parameter {name}. The file does not exist.")

    if args.command in ("list", "json"):
        check("file", args.file)
    elif args.command == "svg":
        check("file", args.file, suffixes=(".lmsp",))
    else:
        check("source", args.source)
        check("target", args.target)
        check("output", args.output, exists=False)
        if Path(args.output).suffix.lower() == ".lmsp" and Path(args.target).suffix.lower() != ".lmsp":
            parser.error("An LMSP output needs an LMSP target to pack the merged project into")


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = parse_arguments(argv)
    if args.config:
        configure(args.config)
    setup_logging(args.verbose)

    try:
        if args.command == "list":
            print("\n".join(list_stacks(args.file)))

        elif args.command == "json":
            print(export_json(args.file))

        elif args.command == "svg":
            print(export_svg(args.file))

        elif args.command == "copy":
            copy_stacks(args.source, args.target, args.output, args.stack_ids)

        elif args.command == "sync":
            sync_stacks(args.source, args.target, args.output)

    except KeyboardInterrupt:
        logging.info("Interrupted by user, nothing was written")
        sys.exit(1)

    except LMSPError as e:
        logging.error(f"{e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
