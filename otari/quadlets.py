"""Podman quadlet unit files for containers, networks and volumes."""

from __future__ import annotations

import io

from otari.definition import NetworkDriver, Stack
from otari.fields import DefinitionError, VolumeMountType
from otari.utils import get_absolute_path, write_empty_line, write_section


class QuadletGenerator:
    """Renders stack resources as systemd quadlet files."""

    def generate_container(self, stack: Stack, container_name: str) -> bytes:
        container = stack.containers.get(container_name)
        if container is None:
            raise DefinitionError(f"container '{container_name}' not found in stack")
        if container.image is None:
            raise DefinitionError(f"container '{container_name}' has no image")

        unit = [("Description", container.container_name + " container")]
        if container.depends:
            dependencies = " ".join(container.depends)
            unit += [("Requires", dependencies), ("After", dependencies)]

        properties = [
            ("ContainerName", container.container_name),
            ("Image", str(container.image)),
        ]
        if container.entrypoint:
            properties.append(("EntryPoint", container.entrypoint))
        if container.init:
            properties.append(("RunInit", "true"))
        properties += [("Environment", f"{k}={v}") for k, v in container.environment.items()]
        if container.ports:
            properties.append(("PublishPort", " ".join(str(port) for port in container.ports)))
        properties += [("Label", f"{k}={v}") for k, v in container.labels.items()]

        if container.networks:
            uses_host = any(
                (network := stack.networks.get(name)) is not None
                and network.driver == NetworkDriver.HOST
                for name in container.networks
            )
            if uses_host:
                properties.append(("Network", "host"))
            else:
                properties += [("Network", name + ".network") for name in container.networks]

        for volume_map in container.volumes:
            mount = volume_map.destination
            if volume_map.options:
                mount += ":" + ",".join(volume_map.options)
            if volume_map.mount_type == VolumeMountType.BIND:
                try:
                    source = get_absolute_path(volume_map.source)
                except OSError as exc:
                    raise DefinitionError(
                        f"failed to get absolute path for bind mount '{volume_map.source}': {exc}"
                    ) from exc
                mount = f"{source}:{mount}"
            else:
                mount = f"{volume_map.source}.volume:{mount}"
            properties.append(("Volume", mount))

        service = [("TimeoutStartSec", "900")]
        policy = container.restart_policy
        if policy.is_no():
            service.append(("Restart", "no"))
        elif policy.is_always():
            service.append(("Restart", "always"))
        elif policy.is_on_failure():
            service.append(("Restart", "on-failure"))
        elif policy.is_unless_stopped():
            service += [("Restart", "always"), ("RestartPreventExitStatus", "0 SIGKILL")]

        buf = io.StringIO()
        write_section(buf, "Unit", unit)
        write_empty_line(buf)
        write_section(buf, "Container", properties)
        write_empty_line(buf)
        write_section(buf, "Service", service)
        write_empty_line(buf)
        write_section(buf, "Install", [("WantedBy", "multi-user.target default.target")])
        return buf.getvalue().encode()

    def generate_network(self, stack: Stack, network_name: str) -> bytes:
        network = stack.networks.get(network_name)
        if network is None:
            raise DefinitionError(f"network '{network_name}' not found in stack")
        properties = [("NetworkName", network.network_name)]
        if network.driver is not None and network.driver != NetworkDriver.HOST:
            properties.append(("Driver", network.driver.value))

        buf = io.StringIO()
        write_section(buf, "Unit", [("Description", f"{network.network_name} network")])
        write_empty_line(buf)
        write_section(buf, "Network", properties)
        return buf.getvalue().encode()

    def generate_volume(self, stack: Stack, volume_name: str) -> bytes:
        volume = stack.volumes.get(volume_name)
        if volume is None:
            raise DefinitionError(f"volume '{volume_name}' not found in stack")

        buf = io.StringIO()
        write_section(buf, "Unit", [("Description", f"{volume.volume_name} volume")])
        write_empty_line(buf)
        write_section(buf, "Volume", [("VolumeName", volume.volume_name)])
        return buf.getvalue().encode()


def generator() -> QuadletGenerator:
    return QuadletGenerator()