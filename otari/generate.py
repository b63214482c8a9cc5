"""Write unit files for the parts of a stack that are new or changed."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from otari.definition import NetworkDriver, Stack
from otari.fields import Image
from otari.spinner import default_spinner
from otari.utils import write_to_file


class Generator(Protocol):
    """Produces the unit file contents for one resource of a stack."""

    def generate_container(self, stack: Stack, name: str) -> bytes: ...

    def generate_network(self, stack: Stack, name: str) -> bytes: ...

    def generate_volume(self, stack: Stack, name: str) -> bytes: ...


def _emit(kind: str, name: str, output_path: str, filename: str, produce: Callable[[], bytes]) -> None:
    sp = default_spinner()
    sp.set_message(f"Generating configuration for {kind} '{name}'")
    try:
        write_to_file(output_path, filename, produce())
    except Exception as exc:
        sp.finish_with_error(f"Failed to generate configuration for {kind} '{name}': {exc}")
        raise
    sp.finish_with_success(f"Generated configuration for {kind} '{name}'")


def generate(stack: Stack, new: Stack, output_path: str, generator: Generator) -> None:
    """Write networks, volumes and containers of stack that also appear in new.

    Host networks get no unit file. Containers built locally are given the
    image name <stack>_<container>.
    """
    for name, network in stack.networks.items():
        if name not in new.networks or network.driver == NetworkDriver.HOST:
            continue
        network.network_name = name
        _emit(
            "network",
            name,
            output_path,
            name + ".network",
            lambda name=name: generator.generate_network(stack, name),
        )

    for name, volume in stack.volumes.items():
        if name not in new.volumes:
            continue
        volume.volume_name = name
        _emit(
            "volume",
            name,
            output_path,
            name + ".volume",
            lambda name=name: generator.generate_volume(stack, name),
        )

    for name, container in stack.containers.items():
        if name not in new.containers:
            continue
        container.container_name = name
        if container.build is not None:
            container.image = Image(image=f"{stack.stack_name}_{name}")
        _emit(
            "container",
            name,
            output_path,
            name + ".container",
            lambda name=name: generator.generate_container(stack, name),
        )