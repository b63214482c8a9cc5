"""The stop command: stop every running container of a stack."""

from __future__ import annotations

from typing import NoReturn

from otari import podman, systemd
from otari.definition import Stack, parse
from otari.fields import DefinitionError
from otari.podman import PodmanError
from otari.spinner import Spinner, default_spinner
from otari.systemd import SystemdError
from otari.utils import Color, default_stack_path, error, paint, stack_name_from_path


def _abort(sp: Spinner | None, message: str, *details: str) -> NoReturn:
    if sp is None:
        print(error(message))
    else:
        sp.finish_with_error(message)
    for text in details:
        print(paint("    " + text, Color.WHITE))
    raise SystemExit(1)


def _read_stack(stack_path: str) -> Stack:
    try:
        with open(stack_path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        _abort(None, "Failed to read " + stack_path, str(exc))
    try:
        return parse(data)
    except DefinitionError as exc:
        _abort(None, "Failed to parse stack definition", str(exc))


def stop(stack_path: str = "") -> None:
    """Stop the running containers of the stack; exits with status 1 on failure."""
    stack_path = stack_path or default_stack_path()
    stack = _read_stack(stack_path)
    stack.stack_name = stack_name_from_path(stack_path)

    try:
        active = podman.active_containers()
    except PodmanError as exc:
        _abort(None, "Failed to get active containers.", str(exc))

    for container in stack.containers.values():
        name = container.container_name
        sp = default_spinner()
        sp.set_message(f"Stopping container '{name}'...")
        if name not in active:
            sp.finish_with_info(f"Container '{name}' is already stopped.")
            continue
        try:
            systemd.stop_unit(name)
        except (SystemdError, OSError) as exc:
            _abort(
                sp,
                f"Failed to stop container '{name}'",
                str(exc),
                "Please check the container logs using 'journalctl --user -xe -t "
                + name
                + "' for more details.",
            )
        sp.finish_with_success(f"Container '{name}' stopped.")