"""The logs command: show the journal of one container of a stack."""

from __future__ import annotations

from typing import NoReturn

from otari import systemd
from otari.definition import Stack, parse
from otari.fields import DefinitionError
from otari.systemd import SystemdError
from otari.utils import Color, default_stack_path, error, paint


def _abort(message: str, *details: str) -> NoReturn:
    print(error(message))
    for text in details:
        print(paint("    " + text, Color.WHITE))
    raise SystemExit(1)


def _read_stack(stack_path: str) -> Stack:
    try:
        with open(stack_path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        _abort("Failed to read " + stack_path, str(exc))
    try:
        return parse(data)
    except DefinitionError as exc:
        _abort("Failed to parse stack definition", str(exc))


def logs(stack_path: str = "", container_name: str = "") -> None:
    """Print the logs of a container defined in the stack."""
    stack_path = stack_path or default_stack_path()
    stack = _read_stack(stack_path)

    if container_name and container_name not in stack.containers:
        _abort(f"Container '{container_name}' not found in stack definition")

    try:
        output = systemd.get_logs(container_name)
    except (SystemdError, OSError) as exc:
        _abort("Failed to get logs", str(exc))

    if isinstance(output, bytes):
        output = output.decode(errors="replace")
    print(output)