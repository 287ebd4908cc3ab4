"""
Command line interface.

Usage:
    linker [-c CONFIG] [serve]
    linker [-c CONFIG] add NAME URL
    linker [-c CONFIG] delete NAME
    linker [-c CONFIG] list
    linker default-config

The configuration file defaults to $LINKER_CONFIG, then /etc/linker.conf.
"""

import argparse
import sys
from typing import List, Optional

from linker_app import __version__
from linker_app.config import DEFAULT_CONFIG, load_settings
from linker_app.errors import LinkerError
from linker_app.lifecycle.manager import LinkerService
from linker_app.logging_config import setup_logging
from linker_app.services.link_service import format_links


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="linker", description="Short name to URL redirect service")
    parser.add_argument("-c", "--config", help="path to the JSON configuration file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("serve", help="run the redirect server (default)")
    add = commands.add_parser("add", help="add a short name")
    add.add_argument("name")
    add.add_argument("url")
    remove = commands.add_parser("delete", help="delete a short name")
    remove.add_argument("name")
    commands.add_parser("list", help="list every short name")
    commands.add_parser("default-config", help="print a sample configuration file")
    return parser


def run(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    command = args.command or "serve"

    if command == "default-config":
        print(DEFAULT_CONFIG)
        return 0

    try:
        settings = load_settings(args.config)
        setup_logging(settings.log_level)
        service = LinkerService(settings).configure()
    except LinkerError as err:
        print(f"error: {err}", file=sys.stderr)
        return 1

    try:
        if command == "serve":
            service.listen()
            return 0
        try:
            if command == "add":
                service.links.add(args.name, args.url)
            elif command == "delete":
                service.links.delete(args.name)
            elif command == "list":
                sys.stdout.write(format_links(service.links.list()))
        finally:
            service.close()
    except LinkerError as err:
        print(f"error: {err}", file=sys.stderr)
        return 1
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
