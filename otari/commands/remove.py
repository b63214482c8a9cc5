"""The remove command: stop a stack's containers and delete its units and resources."""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import NoReturn

from otari import podman, systemd
from otari.definition import Stack, parse
from otari.fields import DefinitionError
from otari.podman import PodmanError
from otari.spinner import Spinner, default_spinner
from otari.systemd import SystemdError
from otari.utils import (
    Color,
    default_stack_path,
    error,
    paint,
    stack_name_from_path,
    success,
)


def _detail(text: str) -> None:
    print(paint("    " + text, Color.WHITE))


def _abort(sp: Spinner | None, message: str, *details: str) -> NoReturn:
    if sp is None:
        print(error(message))
    else:
        sp.finish_with_error(message)
    for text in details:
        _detail(text)
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


def _active_containers() -> list[str]:
    try:
        return podman.active_containers()
    except PodmanError as exc:
        _abort(None, "Failed to get active containers.", str(exc))


def _remove_containers(stack: Stack, active: list[str]) -> None:
    for container in stack.containers.values():
        name = container.container_name
        sp = default_spinner()
        sp.set_message(f"Removing container '{name}'...")

        if name not in active:
            sp.println(paint(f"Container '{name}' is already stopped.", Color.WHITE))
        else:
            sp.println(paint(f"Container '{name}' is running, stopping it first.", Color.WHITE))
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
            sp.println(paint(f"Container '{name}' stopped, removing unit file.", Color.WHITE))

        try:
            systemd.delete_unit_file(name + ".container")
        except (SystemdError, OSError) as exc:
            _abort(sp, f"Failed to remove container unit file for '{name}'", str(exc))
        sp.finish_with_success(f"Container '{name}' removed.")


def _remove_resource(
    kind: str, label: str, name: str, in_use: bool, remove_from_podman: Callable[[str], None]
) -> None:
    """Stop the unit of a volume or network, delete its unit file and the resource itself."""
    sp = default_spinner()
    sp.set_message(f"Removing {kind} '{name}'...")
    if in_use:
        sp.finish_with_info(f"{label} '{name}' is still in use.")
        return

    try:
        systemd.stop_unit(f"{name}-{kind}")
    except (SystemdError, OSError) as exc:
        _abort(sp, f"Failed to stop {kind} '{name}'.", str(exc))

    try:
        systemd.delete_unit_file(f"{name}.{kind}")
    except (SystemdError, OSError) as exc:
        _abort(sp, f"Failed to remove {kind} '{name}'.", str(exc))

    try:
        remove_from_podman(name)
    except PodmanError as exc:
        _abort(sp, f"Failed to remove {kind} '{name}' from Podman.", str(exc))

    sp.finish_with_success(f"{label} '{name}' removed.")


def remove(stack_path: str = "") -> None:
    """Remove the stack: containers, unit files, non-persistent volumes and networks.

    Exits with status 1 after reporting the first failure.
    """
    stack_path = stack_path or default_stack_path()
    stack = _read_stack(stack_path)
    stack.stack_name = stack_name_from_path(stack_path)

    _remove_containers(stack, _active_containers())

    active = _active_containers()
    running = [c for c in stack.containers.values() if c.container_name in active]

    for volume in stack.volumes.values():
        if volume.persist_on_remove:
            continue
        name = volume.volume_name
        in_use = any(v.source == name for c in running for v in c.volumes)
        _remove_resource("volume", "Volume", name, in_use, podman.remove_volume)

    for network in stack.networks.values():
        if network.persist_on_remove:
            continue
        name = network.network_name
        in_use = any(name in c.networks for c in running)
        _remove_resource("network", "Network", name, in_use, podman.remove_network)

    try:
        systemd.reload_daemon()
    except (SystemdError, OSError) as exc:
        _abort(None, "Failed to reload systemd daemon.", str(exc))

    try:
        os.remove(stack.stack_name + ".lock")
    except FileNotFoundError:
        pass
    except OSError as exc:
        _abort(None, "Failed to remove stack lock file.", str(exc))

    print(success(f"Stack '{stack.stack_name}' removed successfully."))