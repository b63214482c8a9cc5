"""Field types of a stack definition: images, ports, mounts, restart policies, builds."""

from __future__ import annotations

import enum
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from otari.hasher import Hash


class DefinitionError(ValueError):
    """A stack definition could not be understood."""


def _scalar_text(value: Any, what: str) -> str:
    """Text of a scalar YAML value, as it would be decoded into a string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise DefinitionError(f"{what}: expected a scalar value, got {type(value).__name__}")


def _string_list(value: Any, what: str) -> list[str]:
    """A YAML sequence of scalars as a list of strings; null is an empty list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [_scalar_text(item, what) for item in value]
    raise DefinitionError(f"{what}: expected a sequence, got {type(value).__name__}")


# ---------------------------------------------------------------- images

_IMAGE_REF_RE = re.compile(
    r"(?:([a-zA-Z0-9.-]+(?::[0-9]+)?)/)?"  # registry
    r"([a-z0-9]+(?:[._-][a-z0-9]+)*"  # first path component
    r"(?:/[a-z0-9]+(?:[._-][a-z0-9]+)*)*)"  # further path components
    r"(?::(\w[\w.-]{0,127})|@(sha256:[0-9a-f]{64}))?",  # tag or digest
    re.ASCII,
)


@dataclass
class Image:
    """A container image reference."""

    registry: str = ""
    project: str = ""
    image: str = ""
    tag: str = ""
    digest: str = ""
    fully_qual: bool = False

    def __str__(self) -> str:
        parts = []
        if self.registry:
            parts.append(self.registry + "/")
        if self.project:
            parts.append(self.project + "/")
        parts.append(self.image)
        if self.tag:
            parts.append(":" + self.tag)
        elif self.digest:
            parts.append("@" + self.digest)
        return "".join(parts)

    def marshal_hash(self, h: Hash) -> None:
        h.write(str(self))


def parse_image(image_ref: str) -> Image:
    """Split an image reference into registry, project, name, tag and digest."""
    match = _IMAGE_REF_RE.fullmatch(image_ref)
    if match is None:
        raise DefinitionError(f"invalid image reference: {image_ref}")
    registry, full_path, tag, digest = (group or "" for group in match.groups())
    project, _, name = full_path.rpartition("/")
    return Image(
        registry=registry,
        project=project,
        image=name,
        tag=tag,
        digest=digest,
        fully_qual=bool(registry or project),
    )


# ------------------------------------------------------ maps and strings

def parse_map_array(value: Any) -> dict[str, str]:
    """A mapping, or a list of KEY=VALUE strings, as one dict of strings."""
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return {
            _scalar_text(key, "mapping key"): _scalar_text(item, "mapping value")
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        result: dict[str, str] = {}
        for item in _string_list(value, "sequence item"):
            key, sep, rest = item.partition("=")
            if sep:
                result[key] = rest
        return result
    raise DefinitionError(f"unsupported value for a key/value map: {value!r}")


def marshal_map_array(mapping: Mapping[str, str], h: Hash) -> None:
    """Feed a key/value map into a hash in sorted key order."""
    for key in sorted(mapping):
        h.write(key)
        h.write(mapping[key])


def parse_string_array(value: Any) -> str:
    """A string or a list of strings, joined with spaces."""
    if value is None or isinstance(value, Mapping):
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(_string_list(value, "sequence item"))
    return _scalar_text(value, "string")


# ----------------------------------------------------------------- ports

_PORT_RE = re.compile(
    r"(?:((?:\d{1,3}(?:\.\d{1,3}){3})|\[.+?\]))?:?"  # IP
    r"(\d+(?:-\d+)?)"  # host port or single port
    r"(?::(\d+)(?:-(\d+))?)?"  # container port, optional range end
    r"(?:/(tcp|udp))?",  # protocol
    re.ASCII,
)


@dataclass
class PortRange:
    start: int = 0
    end: int = 0
    is_range: bool = False


@dataclass
class PortMap:
    """A published port: host address, host ports, container ports, protocol."""

    ip: str = "0.0.0.0"
    host_port: PortRange = field(default_factory=PortRange)
    container_port: PortRange = field(default_factory=PortRange)
    protocol: str = "tcp"

    @staticmethod
    def _format_range(ports: PortRange) -> str:
        if ports.is_range:
            return f"{ports.start}-{ports.end}"
        return str(ports.start)

    def __str__(self) -> str:
        return (
            f"{self.ip}:{self._format_range(self.host_port)}"
            f":{self._format_range(self.container_port)}/{self.protocol}"
        )

    def marshal_hash(self, h: Hash) -> None:
        h.write(str(self))


def _parse_range(text: str) -> PortRange:
    if "-" in text:
        start, _, end = text.partition("-")
        return PortRange(int(start), int(end), True)
    value = int(text)
    return PortRange(value, value, False)


def parse_port(port_str: str) -> PortMap:
    """Parse [IP:]HOST[-END][:CONTAINER[-END]][/PROTO]."""
    match = _PORT_RE.fullmatch(port_str)
    if match is None:
        raise DefinitionError(f"invalid port format: {port_str}")
    ip, host, container_start, container_end, protocol = (g or "" for g in match.groups())
    host_port = _parse_range(host)
    if not container_start:
        container_port = PortRange(host_port.start, host_port.end, host_port.is_range)
    elif container_end:
        container_port = _parse_range(f"{container_start}-{container_end}")
    else:
        container_port = _parse_range(container_start)
    return PortMap(
        ip=ip or "0.0.0.0",
        host_port=host_port,
        container_port=container_port,
        protocol=protocol or "tcp",
    )


# ---------------------------------------------------------------- mounts

_VOLUME_RE = re.compile(r"([^:]+):([^:]+)(?::((?:rw|ro|z|Z)(?:,(?:rw|ro|z|Z))*))?")


class VolumeMountType(str, enum.Enum):
    BIND = "bind"
    VOLUME = "volume"


@dataclass
class VolumeMap:
    """A mount of a named volume or host path into a container."""

    source: str
    destination: str
    options: list[str] = field(default_factory=list)
    mount_type: VolumeMountType = VolumeMountType.VOLUME

    def __str__(self) -> str:
        result = f"{self.source}:{self.destination}"
        if self.options:
            result += ":" + ",".join(self.options)
        return result

    def marshal_hash(self, h: Hash) -> None:
        h.write(str(self))


def parse_volume_map(volume_str: str) -> VolumeMap:
    """Parse SOURCE:DESTINATION[:OPTIONS]."""
    match = _VOLUME_RE.fullmatch(volume_str)
    if match is None:
        raise DefinitionError(f"invalid volume format: {volume_str}")
    source, destination, options = match.groups()
    return VolumeMap(
        source=source,
        destination=destination,
        options=options.split(",") if options else [],
    )


# -------------------------------------------------------- restart policy

_ON_FAILURE_RE = re.compile(r"on-failure:[ \t]*([+-]?\d+)", re.ASCII)
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1


@dataclass
class RestartPolicy:
    condition: str = ""
    max_attempts: int = 0

    def is_always(self) -> bool:
        return self.condition == "always"

    def is_on_failure(self) -> bool:
        return self.condition == "on-failure"

    def is_no(self) -> bool:
        return self.condition == "no"

    def is_unless_stopped(self) -> bool:
        return self.condition == "unless-stopped"

    def marshal_hash(self, h: Hash) -> None:
        h.write(self.condition)
        if self.condition == "on-failure":
            h.write(f":{self.max_attempts}")


def parse_restart_policy(value: Any) -> RestartPolicy:
    """always, no, unless-stopped, or on-failure[:N]; anything else is on-failure."""
    if value is None:
        return RestartPolicy()
    text = _scalar_text(value, "restart")
    if text in ("always", "no", "unless-stopped"):
        return RestartPolicy(text)
    match = _ON_FAILURE_RE.match(text)
    attempts = int(match.group(1)) if match else 0
    if not _INT64_MIN <= attempts <= _INT64_MAX:
        attempts = 0
    return RestartPolicy("on-failure", attempts)


# ----------------------------------------------------------------- build

@dataclass
class Build:
    """How to build a container's image locally."""

    context: str = ""
    container_file: str = ""
    tags: list[str] = field(default_factory=list)
    args: dict[str, str] = field(default_factory=dict)
    target: str = ""

    def marshal_hash(self, h: Hash) -> None:
        h.write(self.context)
        h.write(self.container_file)
        for tag in self.tags:
            h.write(tag)
        marshal_map_array(self.args, h)
        h.write(self.target)


def parse_build(value: Any) -> Build:
    """A build context path, or a mapping of build settings."""
    if isinstance(value, Mapping):
        return Build(
            context=_scalar_text(value.get("context"), "build.context"),
            container_file=_scalar_text(value.get("containerfile"), "build.containerfile"),
            tags=_string_list(value.get("tags"), "build.tags"),
            args=parse_map_array(value.get("args")),
            target=_scalar_text(value.get("target"), "build.target"),
        )
    if isinstance(value, (list, tuple)):
        raise DefinitionError("build: expected a context path or a mapping")
    return Build(context=_scalar_text(value, "build"))