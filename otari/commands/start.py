"""The start command: validate a stack, deploy what changed and start its containers."""

from __future__ import annotations

import os
import subprocess
from typing import NoReturn

from otari import podman, quadlets, rules, systemd
from otari.changes import detect_changes, save_stack_data
from otari.definition import Stack, parse
from otari.fields import Build, DefinitionError
from otari.generate import generate
from otari.podman import PodmanError
from otari.spinner import Spinner, default_spinner
from otari.systemd import SystemdError
from otari.utils import (
    Color,
    default_stack_path,
    error,
    info,
    output_location,
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


def _stream_command(
    sp: Spinner, command: list[str], image: str, doing: str, do: str, done: str
) -> None:
    """Run a podman command, echoing its progress output above the spinner."""
    try:
        process = subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
        )
    except OSError as exc:
        _abort(sp, f"Failed to start {doing} image '{image}'", str(exc))
    with process:
        assert process.stderr is not None
        for line in process.stderr:
            text = line.rstrip("\r\n")
            sp.println(paint(f" >  {text}", Color.WHITE))
    if process.returncode != 0:
        _abort(sp, f"Failed to {do} image '{image}'", f"exit status {process.returncode}")
    sp.finish_with_success(f"{done} image '{image}'.")


def _ensure_images(stack: Stack, new: Stack) -> None:
    # Locally built images are keyed by container name; None marks a remote image.
    images: dict[str, Build | None] = {}
    for container in new.containers.values():
        if container.build is not None:
            images[container.container_name] = container.build
        elif container.image is not None:
            images[str(container.image)] = None

    for image, build in images.items():
        sp = default_spinner()
        if podman.image_exists(image):
            sp.finish_with_info(f"Image '{image}' already exists.")
            continue
        if build is None:
            sp.set_message(f"Pulling image '{image}'")
            _stream_command(
                sp, podman.image_pull_command(image), image, "pulling", "pull", "Pulled"
            )
        else:
            sp.set_message(f"Building image '{image}'")
            try:
                command = podman.image_build_command(build, f"{stack.stack_name}_{image}")
            except PodmanError as exc:
                _abort(sp, f"Failed to prepare build for image '{image}'", str(exc))
            _stream_command(sp, command, image, "building", "build", "Built")


def _generate_quadlets(stack: Stack, new: Stack) -> None:
    if not (new.containers or new.volumes or new.networks):
        print(info("No changes detected that require quadlet generation."))
        return
    print(info("Generating systemd quadlets..."))
    output_dir = output_location()
    try:
        os.makedirs(output_dir, mode=0o755, exist_ok=True)
    except OSError as exc:
        _abort(None, "Failed to create output directory.", str(exc))
    try:
        generate(stack, new, output_dir, quadlets.generator())
    except (DefinitionError, OSError) as exc:
        _abort(None, "Failed to generate systemd quadlets.", str(exc))


def _remove_deleted(stack: Stack, deleted: Stack) -> None:
    for container in deleted.containers.values():
        name = container.container_name
        sp = default_spinner()
        sp.set_message(f"Removing container '{name}'...")
        try:
            container.remove()
        except (SystemdError, OSError) as exc:
            _abort(sp, f"Failed to remove container '{name}'.", str(exc))
        sp.finish_with_success(f"Container '{name}' removed.")

    remaining = [
        c for c in stack.containers.values() if c.container_name not in deleted.containers
    ]

    for network in deleted.networks.values():
        name = network.network_name
        sp = default_spinner()
        if any(name in container.networks for container in remaining):
            sp.set_message(f"Skipping removal of network '{name}' as it is still in use.")
            sp.finish_with_info(f"Network '{name}' is still in use.")
            continue
        sp.set_message(f"Removing network '{name}'...")
        try:
            systemd.delete_unit_file(name + ".network")
        except (SystemdError, OSError) as exc:
            _abort(sp, f"Failed to remove network '{name}'.", str(exc))
        sp.finish_with_success(f"Network '{name}' removed.")

    for volume in deleted.volumes.values():
        name = volume.volume_name
        sp = default_spinner()
        if any(v.source == name for container in remaining for v in container.volumes):
            sp.set_message(f"Skipping removal of volume '{name}' as it is still in use.")
            sp.finish_with_info(f"Volume '{name}' is still in use.")
            continue
        sp.set_message(f"Removing volume '{name}'...")
        try:
            systemd.delete_unit_file(name + ".volume")
        except (SystemdError, OSError) as exc:
            _abort(sp, f"Failed to remove volume '{name}'.", str(exc))
        sp.finish_with_success(f"Volume '{name}' removed.")


def _start_containers(stack: Stack) -> None:
    try:
        active = podman.active_containers()
    except PodmanError as exc:
        _abort(None, "Failed to get active containers.", str(exc))
    for container in stack.containers.values():
        name = container.container_name
        sp = default_spinner()
        sp.set_message(f"Starting container '{name}'...")
        if name in active:
            sp.finish_with_info(f"Container '{name}' is already running.")
            continue
        try:
            systemd.start_unit(name)
        except (SystemdError, OSError) as exc:
            _abort(
                sp,
                f"Failed to start container '{name}'",
                str(exc),
                "Please check the container logs using 'journalctl --user -xe -t "
                + name
                + "' for more details.",
            )
        sp.finish_with_success(f"Container '{name}' started.")


def start(stack_path: str = "") -> None:
    """Deploy the stack: build or pull images, write unit files, start containers.

    Exits with status 1 after reporting the first failure.
    """
    stack_path = stack_path or default_stack_path()
    stack = _read_stack(stack_path)
    stack.stack_name = stack_name_from_path(stack_path)

    problems = rules.validate(stack)
    if problems:
        print(error("Failed to validate stack:"))
        for problem in problems:
            print(paint(f"    • {problem.message}", Color.RED))
        raise SystemExit(1)
    print(success("Stack validated successfully!"))

    sp = default_spinner()
    sp.set_message("Detecting changes...")
    try:
        found = detect_changes(stack)
    except (ValueError, OSError) as exc:
        _abort(sp, "Failed to detect changes.", str(exc))
    if found.total > 0:
        sp.finish_with_info(f"Detected {found.total} change(s).")
    elif found.total == -1:
        sp.finish_with_info("No existing stack found.")
    else:
        sp.finish_with_success("No changes detected.")

    if found.total != 0:
        if not stack.containers:
            print(info("No containers defined in the stack."))
            return
        _ensure_images(stack, found.new)
        _generate_quadlets(stack, found.new)
        if found.deleted is not None:
            _remove_deleted(stack, found.deleted)

    print()

    try:
        systemd.reload_daemon()
    except (SystemdError, OSError) as exc:
        _abort(None, "Failed to reload systemd daemon.", str(exc))

    _start_containers(stack)

    sp = default_spinner()
    sp.set_message("Computing change hashes...")
    try:
        save_stack_data(stack)
    except (OSError, ValueError, TypeError) as exc:
        _abort(sp, "Failed to store stack definition.", str(exc))
    sp.finish_with_success("Change hashes computed and stored successfully!")

    print(success("All containers started successfully!"))