"""Validation rules applied to a stack definition before it is deployed."""

from __future__ import annotations

import enum
import os
from collections.abc import Callable
from dataclasses import dataclass

from otari.definition import NetworkDriver, Stack
from otari.fields import VolumeMountType


@dataclass(frozen=True)
class RuleError:
    """One problem found in a stack definition."""

    message: str

    def __str__(self) -> str:
        return self.message


Rule = Callable[[Stack], list[RuleError]]


# ------------------------------------------------------------ containers

def validate_container_names(stack: Stack) -> list[RuleError]:
    errors: list[RuleError] = []
    seen: set[str] = set()
    for container in stack.containers.values():
        if container.container_name in seen:
            errors.append(
                RuleError(f"Duplicate container name '{container.container_name}' found.")
            )
        else:
            seen.add(container.container_name)
    return errors


def validate_duplicate_environment_variables(stack: Stack) -> list[RuleError]:
    errors: list[RuleError] = []
    for container in stack.containers.values():
        seen: set[str] = set()
        for key in container.environment:
            if key in seen:
                errors.append(
                    RuleError(
                        f"Duplicate environment variable '{key}' found in container "
                        f"'{container.container_name}'."
                    )
                )
            else:
                seen.add(key)
    return errors


def validate_dependency_existence(stack: Stack) -> list[RuleError]:
    return [
        RuleError(
            f"Container '{container.container_name}' has undefined dependency '{dependency}'."
        )
        for container in stack.containers.values()
        for dependency in container.depends
        if dependency not in stack.containers
    ]


class _Visit(enum.Enum):
    UNVISITED = 0
    VISITING = 1
    DONE = 2


def validate_circular_dependencies(stack: Stack) -> list[RuleError]:
    """Report each dependency cycle once, as the path that closes it."""
    deps = {name: list(container.depends) for name, container in stack.containers.items()}
    state: dict[str, _Visit] = {}
    seen_cycles: set[str] = set()
    errors: list[RuleError] = []

    def visit(name: str, path: list[str]) -> None:
        current = state.get(name, _Visit.UNVISITED)
        if current is _Visit.DONE:
            return
        if current is _Visit.VISITING:
            start = path.index(name) if name in path else 0
            cycle = [*path[start:], name]
            key = "->".join(cycle)
            if key not in seen_cycles:
                seen_cycles.add(key)
                errors.append(
                    RuleError(f"circular dependency detected: {' -> '.join(cycle)}")
                )
            return

        state[name] = _Visit.VISITING
        path = [*path, name]
        for dependency in deps[name]:
            # Unknown dependencies are reported by validate_dependency_existence.
            if dependency in deps:
                visit(dependency, path)
        state[name] = _Visit.DONE

    for name in deps:
        if state.get(name, _Visit.UNVISITED) is _Visit.UNVISITED:
            visit(name, [])
    return errors


# -------------------------------------------------------------- networks

def validate_network_names(stack: Stack) -> list[RuleError]:
    errors: list[RuleError] = []
    seen: set[str] = set()
    for network in stack.networks.values():
        if network.network_name in seen:
            errors.append(RuleError(f"Duplicate network name '{network.network_name}' found."))
        else:
            seen.add(network.network_name)
    return errors


def validate_container_network_existence(stack: Stack) -> list[RuleError]:
    return [
        RuleError(
            f"Container '{container.container_name}' references undefined network '{network}'."
        )
        for container in stack.containers.values()
        for network in container.networks
        if network not in stack.networks
    ]


def validate_port_conflicts(stack: Stack) -> list[RuleError]:
    """Every host port may be published by one container only."""
    errors: list[RuleError] = []
    owners: dict[int, str] = {}
    for container in stack.containers.values():
        for port in container.ports:
            host = port.host_port
            ports = range(host.start, host.end + 1) if host.is_range else (host.start,)
            for number in ports:
                owner = owners.get(number)
                if owner is not None:
                    errors.append(
                        RuleError(
                            f"Port conflict on port {number} between containers "
                            f"'{owner}' and '{container.container_name}'."
                        )
                    )
                else:
                    owners[number] = container.container_name
    return errors


def validate_host_network_port_conflicts(stack: Stack) -> list[RuleError]:
    errors: list[RuleError] = []
    for container in stack.containers.values():
        for network_name in container.networks:
            network = stack.networks.get(network_name)
            if network is not None and network.driver == NetworkDriver.HOST and container.ports:
                errors.append(
                    RuleError(
                        f"Container '{container.container_name}' uses host network and "
                        "defines port mappings, which is a conflict."
                    )
                )
    return errors


# --------------------------------------------------------------- volumes

def validate_volume_names(stack: Stack) -> list[RuleError]:
    errors: list[RuleError] = []
    seen: set[str] = set()
    for volume in stack.volumes.values():
        if volume.volume_name in seen:
            errors.append(RuleError(f"Duplicate volume name '{volume.volume_name}' found."))
        else:
            seen.add(volume.volume_name)
    return errors


def _is_host_path(path: str) -> bool:
    if os.path.isabs(path):
        return True
    if os.sep in path:
        return True
    if os.sep != "/" and "/" in path:
        return True
    return (
        os.path.normpath(path) == "."
        or path.startswith("." + os.sep)
        or path.startswith(".." + os.sep)
    )


def validate_container_volume_existence(stack: Stack) -> list[RuleError]:
    """Mounts must name a defined volume or an existing host path.

    Mounts of existing host paths are switched to bind mounts.
    """
    errors: list[RuleError] = []
    for container in stack.containers.values():
        for volume_map in container.volumes:
            source = volume_map.source
            if source in stack.volumes:
                continue
            if _is_host_path(source) and os.path.exists(source):
                volume_map.mount_type = VolumeMountType.BIND
                continue
            errors.append(
                RuleError(
                    f"Container '{container.container_name}' references undefined volume "
                    f"'{source}'."
                )
            )
    return errors


def validate_duplicate_volume_mounts_per_container(stack: Stack) -> list[RuleError]:
    errors: list[RuleError] = []
    for container in stack.containers.values():
        seen: set[str] = set()
        for volume_map in container.volumes:
            mount_point = volume_map.destination
            if mount_point in seen:
                errors.append(
                    RuleError(
                        f"Container '{container.container_name}' has duplicate volume mount "
                        f"point '{mount_point}'."
                    )
                )
            else:
                seen.add(mount_point)
    return errors


# ------------------------------------------------------------- all rules

def default_rules() -> list[Rule]:
    """The rules applied by validate, in the order they run."""
    return [
        validate_container_names,
        validate_duplicate_environment_variables,
        validate_network_names,
        validate_volume_names,
        validate_container_network_existence,
        validate_container_volume_existence,
        validate_port_conflicts,
        validate_host_network_port_conflicts,
        validate_duplicate_volume_mounts_per_container,
        validate_dependency_existence,
        validate_circular_dependencies,
    ]


def validate(stack: Stack) -> list[RuleError]:
    """Run every default rule and collect all problems found."""
    return [error for rule in default_rules() for error in rule(stack)]