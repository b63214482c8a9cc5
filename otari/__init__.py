"""Run container stacks described in YAML as Podman quadlets managed by systemd."""

__version__ = "0.1.0"