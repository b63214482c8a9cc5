"""Change detection between a stack definition and its saved lock file."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import tomli_w

from otari.definition import Container, Network, Stack, Volume
from otari.hasher import marshal_hashable_b58
from otari.utils import path_exists

STACK_DATA_VERSION = 1


@dataclass
class StackData:
    """Contents of a lock file: a hash for every resource of a deployed stack."""

    version: int = 0
    generated_at: datetime | None = None
    containers: dict[str, str] = field(default_factory=dict)
    volumes: dict[str, str] = field(default_factory=dict)
    networks: dict[str, str] = field(default_factory=dict)

    @classmethod
    def _from_document(cls, document: dict[str, Any]) -> "StackData":
        def hashes(key: str) -> dict[str, str]:
            value = document.get(key, {})
            if not isinstance(value, dict):
                raise ValueError(f"'{key}' in stack data must be a table")
            return {str(name): str(digest) for name, digest in value.items()}

        version = document.get("version", 0)
        if not isinstance(version, int) or isinstance(version, bool):
            raise ValueError("'version' in stack data must be an integer")
        generated_at = document.get("generated_at")
        return cls(
            version=version,
            generated_at=generated_at if isinstance(generated_at, datetime) else None,
            containers=hashes("containers"),
            volumes=hashes("volumes"),
            networks=hashes("networks"),
        )

    def _to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {"version": self.version}
        if self.generated_at is not None:
            document["generated_at"] = self.generated_at
        for key in ("containers", "volumes", "networks"):
            value = getattr(self, key)
            if value:
                document[key] = dict(value)
        return document


@dataclass
class Changes:
    """Resources to create or update, resources to delete, and their count.

    total is -1 when there was no earlier deployment to compare with; deleted
    is then None and new is the whole stack.
    """

    new: Stack
    deleted: Stack | None
    total: int


def _lock_path(stack: Stack) -> str:
    return stack.stack_name + ".lock"


def _changed(current: dict, saved: dict[str, str]) -> dict:
    return {
        name: item
        for name, item in current.items()
        if saved.get(name) != marshal_hashable_b58(item)
    }


def detect_changes(new_stack: Stack) -> Changes:
    """Compare a stack with the hashes saved at its last deployment.

    Raises ValueError when the lock file cannot be read as stack data.
    """
    lock_path = _lock_path(new_stack)
    if not path_exists(lock_path):
        return Changes(new=new_stack, deleted=None, total=-1)

    with open(lock_path, "rb") as handle:
        data = StackData._from_document(tomllib.load(handle))
    if data.version != STACK_DATA_VERSION:
        raise ValueError(f"unsupported stack data version: {data.version}")

    new = Stack(
        containers=_changed(new_stack.containers, data.containers),
        volumes=_changed(new_stack.volumes, data.volumes),
        networks=_changed(new_stack.networks, data.networks),
    )
    deleted = Stack(
        containers={
            name: Container(container_name=name)
            for name in data.containers
            if name not in new_stack.containers
        },
        volumes={
            name: Volume(volume_name=name)
            for name in data.volumes
            if name not in new_stack.volumes
        },
        networks={
            name: Network(network_name=name)
            for name in data.networks
            if name not in new_stack.networks
        },
    )
    total = sum(
        len(part)
        for part in (
            new.containers, deleted.containers,
            new.volumes, deleted.volumes,
            new.networks, deleted.networks,
        )
    )
    return Changes(new=new, deleted=deleted, total=total)


def save_stack_data(stack: Stack) -> None:
    """Write the lock file holding the hash of every resource of the stack.

    The image of a container that is built locally is cleared first, so that
    the generated image name does not enter its hash.
    """
    for container in stack.containers.values():
        if container.build is not None:
            container.image = None
    data = StackData(
        version=STACK_DATA_VERSION,
        generated_at=datetime.now(timezone.utc).replace(microsecond=0),
        containers={name: marshal_hashable_b58(c) for name, c in stack.containers.items()},
        volumes={name: marshal_hashable_b58(v) for name, v in stack.volumes.items()},
        networks={name: marshal_hashable_b58(n) for name, n in stack.networks.items()},
    )
    with open(_lock_path(stack), "wb") as handle:
        tomli_w.dump(data._to_document(), handle)