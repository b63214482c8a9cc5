"""Shared helpers: coloured messages, unit-file writers, paths and files."""

from __future__ import annotations

import enum
import os
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import TextIO

DEFAULT_STACK_FILE = "otari.yaml"
ALTERNATE_STACK_FILE = "otari.yml"


class Color(enum.IntEnum):
    """ANSI SGR attributes used for terminal output."""

    BOLD = 1
    RED = 31
    GREEN = 32
    YELLOW = 33
    MAGENTA = 35
    CYAN = 36
    WHITE = 37


def _color_enabled() -> bool:
    if os.environ.get("NO_COLOR", ""):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    isatty = getattr(sys.stdout, "isatty", None)
    try:
        return bool(isatty and isatty())
    except ValueError:
        return False


def paint(text: str, *args: Color) -> str:
    """Wrap text in ANSI attributes when stdout is a colour terminal."""
    if not args or not _color_enabled():
        return text
    codes = ";".join(str(int(attr)) for attr in args)
    return f"\x1b[{codes}m{text}\x1b[0m"


def success(msg: str) -> str:
    return f"{paint('[+]', Color.GREEN, Color.BOLD)} {msg}"


def error(msg: str) -> str:
    return f"{paint('[x]', Color.RED, Color.BOLD)} {msg}"


def info(msg: str) -> str:
    return f"{paint('[i]', Color.CYAN, Color.BOLD)} {msg}"


def default_stack_path() -> str:
    """Return the stack file to use when none was given."""
    if os.path.exists(DEFAULT_STACK_FILE):
        return DEFAULT_STACK_FILE
    return ALTERNATE_STACK_FILE


def write_empty_line(stream: TextIO) -> None:
    stream.write("\n")


def write_header(stream: TextIO, header: str) -> None:
    stream.write(f"[{header}]\n")


def write_value(stream: TextIO, key: str, value: str) -> None:
    stream.write(f"{key}={value}\n")


def write_section(stream: TextIO, section: str, values: Iterable[tuple[str, str]]) -> None:
    """Write an INI-style section header followed by its key=value lines."""
    write_header(stream, section)
    for key, value in values:
        write_value(stream, key, value)


def output_location() -> str:
    """Directory where generated quadlet unit files are placed."""
    try:
        home = Path.home()
    except (RuntimeError, KeyError):
        return "stack"
    return str(home / ".config" / "containers" / "systemd")


def get_absolute_path(path: str) -> str:
    """Resolve a path against the working directory unless it is already absolute."""
    if path.startswith(os.sep):
        return path
    return os.path.normpath(os.path.join(os.getcwd(), path))


def _base_name(path: str) -> str:
    if path == "":
        return "."
    stripped = path.rstrip(os.sep)
    if stripped == "":
        return os.sep
    return stripped.rsplit(os.sep, 1)[-1]


def stack_name_from_path(path: str) -> str:
    """Name of the stack: the file name without its extension."""
    base = _base_name(path)
    dot = base.rfind(".")
    return base[:dot] if dot >= 0 else base


def path_exists(path: str) -> bool:
    try:
        os.stat(path)
    except (OSError, ValueError):
        return False
    return True


def is_string_empty(s: str) -> bool:
    return s.strip() == ""


def write_file_atomic(path: str, data: bytes | str, mode: int = 0o644) -> None:
    """Write data to a temporary file beside path, then move it into place."""
    if isinstance(data, str):
        data = data.encode()
    tmp_path = path + ".tmp"
    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as handle:
        handle.write(data)
    os.replace(tmp_path, path)


def write_to_file(directory: str, filename: str, data: bytes | str) -> None:
    write_file_atomic(directory + os.sep + filename, data, 0o644)