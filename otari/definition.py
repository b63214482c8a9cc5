"""Stack definitions: containers, volumes and networks read from YAML."""

from __future__ import annotations

import enum
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

from otari import systemd
from otari.fields import (
    Build,
    DefinitionError,
    Image,
    PortMap,
    RestartPolicy,
    VolumeMap,
    _scalar_text,
    _string_list,
    marshal_map_array,
    parse_build,
    parse_image,
    parse_map_array,
    parse_port,
    parse_restart_policy,
    parse_string_array,
    parse_volume_map,
)
from otari.hasher import Hash


class _StackLoader(yaml.SafeLoader):
    """Keeps plain scalars as their text; only nulls and merge keys are resolved."""

    yaml_implicit_resolvers: dict = {}


_StackLoader.add_implicit_resolver(
    "tag:yaml.org,2002:null", re.compile(r"^(?:~|null|Null|NULL|)$"), ["~", "n", "N", ""]
)
_StackLoader.add_implicit_resolver("tag:yaml.org,2002:merge", re.compile(r"^(?:<<)$"), ["<"])

_TRUE = {"true", "True", "TRUE", "yes", "Yes", "YES", "on", "On", "ON"}
_FALSE = {"false", "False", "FALSE", "no", "No", "NO", "off", "Off", "OFF"}


def _parse_bool(value: Any, what: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    text = _scalar_text(value, what)
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise DefinitionError(f"{what}: cannot read {text!r} as a boolean")


class NetworkDriver(str, enum.Enum):
    BRIDGE = "bridge"
    HOST = "host"
    OVERLAY = "ipvlan"
    MACVLAN = "macvlan"
    DEFAULT = "bridge"


def parse_network_driver(value: Any) -> NetworkDriver:
    """A driver name; unknown names fall back to the default driver."""
    try:
        return NetworkDriver(_scalar_text(value, "driver"))
    except ValueError:
        return NetworkDriver.DEFAULT


@dataclass
class Network:
    network_name: str = ""
    driver: NetworkDriver | None = None
    persist_on_remove: bool = False

    def marshal_hash(self, h: Hash) -> None:
        h.write(self.network_name)
        h.write(self.driver.value if self.driver is not None else "")


@dataclass
class Volume:
    volume_name: str = ""
    persist_on_remove: bool = False

    def marshal_hash(self, h: Hash) -> None:
        h.write(self.volume_name)


@dataclass
class Container:
    """One container of a stack and the systemd unit that runs it."""

    container_name: str = ""
    entrypoint: str = ""
    environment: dict[str, str] = field(default_factory=dict)
    image: Image | None = None
    build: Build | None = None
    init: bool = False
    labels: dict[str, str] = field(default_factory=dict)
    networks: list[str] = field(default_factory=list)
    ports: list[PortMap] = field(default_factory=list)
    restart_policy: RestartPolicy = field(default_factory=RestartPolicy)
    volumes: list[VolumeMap] = field(default_factory=list)
    depends: list[str] = field(default_factory=list)

    @classmethod
    def from_yaml(cls, name: str, data: Any) -> "Container":
        """Build a container from its loaded YAML mapping."""
        if not isinstance(data, Mapping):
            raise DefinitionError(f"container '{name}' must be a mapping")
        image = data.get("image")
        build = data.get("build")
        return cls(
            container_name=name,
            entrypoint=parse_string_array(data.get("entrypoint")),
            environment=parse_map_array(data.get("environment")),
            image=None if image is None else parse_image(_scalar_text(image, "image")),
            build=None if build is None else parse_build(build),
            init=_parse_bool(data.get("init"), "init"),
            labels=parse_map_array(data.get("labels")),
            networks=_string_list(data.get("networks"), "networks"),
            ports=[parse_port(p) for p in _string_list(data.get("ports"), "ports")],
            restart_policy=parse_restart_policy(data.get("restart")),
            volumes=[parse_volume_map(v) for v in _string_list(data.get("volumes"), "volumes")],
            depends=_string_list(data.get("depends"), "depends"),
        )

    def marshal_hash(self, h: Hash) -> None:
        h.write(self.container_name)
        h.write(self.entrypoint)
        marshal_map_array(self.environment, h)
        if self.image is not None:
            self.image.marshal_hash(h)
        if self.build is not None:
            self.build.marshal_hash(h)
        h.write(b"\x01" if self.init else b"\x00")
        marshal_map_array(self.labels, h)
        for network in self.networks:
            h.write(network)
        for port in self.ports:
            port.marshal_hash(h)
        self.restart_policy.marshal_hash(h)
        for volume in self.volumes:
            volume.marshal_hash(h)
        for dependency in self.depends:
            h.write(dependency)

    def start(self) -> None:
        systemd.start_unit(self.container_name)

    def stop(self) -> None:
        systemd.stop_unit(self.container_name)

    def restart(self) -> None:
        systemd.restart_unit(self.container_name)

    def remove(self) -> None:
        """Stop the container's unit and delete its unit file."""
        systemd.stop_unit(self.container_name)
        systemd.delete_unit_file(self.container_name + ".container")


@dataclass
class Stack:
    stack_name: str = ""
    containers: dict[str, Container] = field(default_factory=dict)
    volumes: dict[str, Volume] = field(default_factory=dict)
    networks: dict[str, Network] = field(default_factory=dict)


def _section(document: Mapping, key: str) -> dict[str, Any]:
    value = document.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise DefinitionError(f"'{key}' must be a mapping")
    return {_scalar_text(name, key): item for name, item in value.items()}


def _volume(name: str, data: Any) -> Volume:
    if data is None:
        return Volume(volume_name=name)
    if not isinstance(data, Mapping):
        raise DefinitionError(f"volume '{name}' must be a mapping")
    return Volume(name, _parse_bool(data.get("persist_on_remove"), "persist_on_remove"))


def _network(name: str, data: Any) -> Network:
    if data is None:
        return Network(network_name=name)
    if not isinstance(data, Mapping):
        raise DefinitionError(f"network '{name}' must be a mapping")
    driver = data.get("driver")
    return Network(
        network_name=name,
        driver=None if driver is None else parse_network_driver(driver),
        persist_on_remove=_parse_bool(data.get("persist_on_remove"), "persist_on_remove"),
    )


def parse(data: bytes | str) -> Stack:
    """Parse a YAML stack definition."""
    try:
        document = yaml.load(data, Loader=_StackLoader)
    except yaml.YAMLError as exc:
        raise DefinitionError(str(exc)) from exc
    if document is None:
        return Stack()
    if not isinstance(document, Mapping):
        raise DefinitionError("stack definition must be a mapping")
    return Stack(
        containers={
            name: Container.from_yaml(name, item)
            for name, item in _section(document, "containers").items()
        },
        volumes={name: _volume(name, item) for name, item in _section(document, "volumes").items()},
        networks={name: _network(name, item) for name, item in _section(document, "networks").items()},
    )


def load_stack(path: str) -> Stack:
    """Read and parse a stack definition file."""
    with open(path, "rb") as handle:
        return parse(handle.read())