"""Command-line entry point: manage a stack of containers through systemd quadlets."""

from __future__ import annotations

import argparse
import os

from otari import podman, systemd
from otari.commands.logs import logs
from otari.commands.remove import remove
from otari.commands.start import start
from otari.commands.stop import stop
from otari.spinner import default_spinner
from otari.systemd import SystemdError
from otari.utils import Color, error, paint

VERSION = "dev"
COMMIT = "none"
DATE = "unknown"

MIN_PODMAN = (4, 4)

_LOGO = """
 ██████╗ ████████╗ █████╗ ██████╗ ██╗
██╔═══██╗╚══██╔══╝██╔══██╗██╔══██╗██║
██║   ██║   ██║   ███████║██████╔╝██║
██║   ██║   ██║   ██╔══██║██╔══██╗██║
╚██████╔╝   ██║   ██║  ██║██║  ██║██║
 ╚═════╝    ╚═╝   ╚═╝  ╚═╝╚═╝  ╚═╝╚═╝
"""


def print_logo() -> None:
    print(paint(_LOGO, Color.MAGENTA, Color.BOLD))
    print(paint("A modern container orchestration tool", Color.WHITE))
    print()


def system_check() -> None:
    """Check that podman, systemd and user lingering are ready; exit with status 1 if not."""
    sp = default_spinner()
    sp.set_message("Checking for Podman...")

    version = podman.podman_version()
    if version is None:
        sp.finish_with_error("Podman is not installed. Please install Podman to use Otari.")
        raise SystemExit(1)
    sp.println(paint(" >  Podman installed OK", Color.WHITE))

    sp.set_message("Checking Podman version...")
    major, minor, _ = podman.parse_podman_version(version)
    if (major, minor) < MIN_PODMAN:
        sp.finish_with_error(
            "Podman version 4.4.0 or higher is required. Please upgrade Podman to use Otari."
        )
        raise SystemExit(1)
    sp.println(paint(f" >  Podman version {version} OK", Color.WHITE))

    sp.set_message("Checking if systemd is running...")
    if not systemd.is_systemd_running():
        sp.finish_with_error(
            "systemd is not running. Otari requires systemd to manage containers."
        )
        raise SystemExit(1)
    sp.println(paint(" >  systemd is running OK", Color.WHITE))

    sp.set_message("Checking if user lingering is enabled...")
    try:
        lingering = systemd.is_user_lingering_enabled()
    except (SystemdError, OSError, KeyError) as exc:
        sp.finish_with_error(f"Failed to check user lingering: {exc}")
        raise SystemExit(1) from exc

    if not lingering:
        sp.finish_with_error(
            "User lingering is not enabled. Please enable user lingering to use Otari."
        )
        print()
        print("To enable user lingering, run the following command:")
        print()
        user = os.environ.get("USER", "")
        print(paint(f"    sudo loginctl enable-linger {user}", Color.YELLOW))
        print()
        raise SystemExit(1)

    sp.println(paint(" >  User lingering is enabled OK", Color.WHITE))
    sp.finish_with_success("System checks passed!")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="otari")
    commands = parser.add_subparsers(dest="command", metavar="command")
    commands.add_parser("version", help="Print the version information")
    for name, text in (
        ("start", "Start the stack"),
        ("stop", "Stop the stack"),
        ("remove", "Remove the stack"),
        ("logs", "View logs for the stack or a specific container"),
    ):
        sub = commands.add_parser(name, help=text)
        sub.add_argument(
            "-f", "--file", default="", help="Path to the stack definition file"
        )
        if name == "logs":
            sub.add_argument(
                "container",
                nargs="?",
                default="",
                help="Name of the container to view logs for (optional)",
            )
    return parser


def main(argv: list[str] | None = None) -> int:
    print_logo()
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "version":
        print(f"Version: {VERSION}\nCommit: {COMMIT}\nDate: {DATE}")
        return 0

    if args.command == "logs" and not args.container:
        print(error("Please specify a container name."))
        return 0

    system_check()
    if args.command == "start":
        start(args.file)
    elif args.command == "stop":
        stop(args.file)
    elif args.command == "remove":
        remove(args.file)
    else:
        logs(args.file, args.container)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())