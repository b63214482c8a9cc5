"""Podman command-line operations: version, containers, networks, volumes, images."""

from __future__ import annotations

import os
import re
import subprocess

from otari.fields import Build
from otari.utils import get_absolute_path, path_exists

PODMAN = "podman"

_VERSION_RE = re.compile(r"\s*([+-]?\d+)\.([+-]?\d+)\.([+-]?\d+)", re.ASCII)


class PodmanError(Exception):
    """A podman command failed or could not be prepared."""


def _run(args: list[str], capture: bool = False) -> bytes:
    try:
        result = subprocess.run(
            [PODMAN, *args],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE if capture else subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=True,
        )
    except FileNotFoundError as exc:
        raise PodmanError(f'exec: "{PODMAN}": executable file not found') from exc
    except subprocess.CalledProcessError as exc:
        raise PodmanError(f"exit status {exc.returncode}") from exc
    return result.stdout if capture else b""


def podman_version() -> str | None:
    """The installed podman version, or None when podman cannot be run."""
    try:
        out = _run(["version", "-f", "{{ .Version }}"], capture=True)
    except PodmanError:
        return None
    return out.decode(errors="replace").strip()


def parse_podman_version(version: str) -> tuple[int, int, int]:
    """Major, minor and patch numbers; (0, 0, 0) when they cannot be read."""
    match = _VERSION_RE.match(version)
    if match is None:
        return 0, 0, 0
    major, minor, patch = (int(part) for part in match.groups())
    return major, minor, patch


def active_containers() -> list[str]:
    """Names of the running containers."""
    out = _run(["ps", "--format", "{{.Names}}"], capture=True)
    text = out.decode(errors="replace").strip()
    return [line for line in text.split("\n") if line]


def remove_network(network_name: str) -> None:
    _run(["network", "rm", "-f", network_name])


def remove_volume(volume_name: str) -> None:
    _run(["volume", "rm", "-f", volume_name])


def image_exists(image: str) -> bool:
    """True when the image is present in local storage."""
    try:
        result = subprocess.run(
            [PODMAN, "image", "exists", image],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError:
        return False
    return result.returncode == 0


def image_pull_command(image: str) -> list[str]:
    """Command line that pulls an image."""
    return [PODMAN, "pull", image]


def image_build_command(build: Build, image: str) -> list[str]:
    """Command line that builds an image from a build definition.

    Raises PodmanError when the build context or container file is missing.
    """
    context = get_absolute_path(build.context)
    if not path_exists(context):
        raise PodmanError(f"build context path does not exist: {context}")

    container_file = build.container_file
    if not container_file:
        container_file = "Containerfile"
        if not path_exists(os.path.join(context, container_file)):
            container_file = "Dockerfile"

    if not os.path.isabs(container_file):
        container_file = os.path.normpath(os.path.join(context, container_file))
    if not path_exists(container_file):
        raise PodmanError(f"containerfile does not exist: {container_file}")

    command = [PODMAN, "build", "-t", image, "-f", container_file]
    for key, value in build.args.items():
        command += ["--build-arg", f"{key}={value}"]
    for tag in build.tags:
        command += ["-t", tag]
    if build.target:
        command += ["--target", build.target]
    command.append(context)
    return command