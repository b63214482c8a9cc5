"""User-level systemd control: unit lifecycle, journal logs, host checks."""

from __future__ import annotations

import os
import subprocess

from otari.utils import output_location

SYSTEMD_RUNTIME_DIR = "/run/systemd/system"
LINGER_DIR = "/var/lib/systemd/linger"


class SystemdError(Exception):
    """A systemd or journal operation failed."""


def _current_username() -> str:
    try:
        import pwd
    except ImportError:
        import getpass

        return getpass.getuser()
    try:
        return pwd.getpwuid(os.getuid()).pw_name
    except KeyError as exc:
        raise SystemdError(f"unknown user id {os.getuid()}") from exc


def is_systemd_running() -> bool:
    """True when the systemd runtime directory is present."""
    try:
        os.stat(SYSTEMD_RUNTIME_DIR)
    except FileNotFoundError:
        return False
    except OSError:
        return True
    return True


def is_user_lingering_enabled() -> bool:
    """True when lingering is enabled for the current user."""
    username = _current_username()
    try:
        os.stat(os.path.join(LINGER_DIR, username))
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise SystemdError(str(exc)) from exc
    return True


def _run(cmd: list[str], capture: bool = False) -> bytes:
    try:
        result = subprocess.run(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE if capture else subprocess.DEVNULL,
            stderr=subprocess.PIPE if capture else subprocess.DEVNULL,
            check=True,
        )
    except FileNotFoundError as exc:
        raise SystemdError(f'exec: "{cmd[0]}": executable file not found') from exc
    except subprocess.CalledProcessError as exc:
        raise SystemdError(f"exit status {exc.returncode}") from exc
    return result.stdout if capture else b""


def reload_daemon() -> None:
    _run(["systemctl", "--user", "daemon-reload"])


def start_unit(unit_name: str) -> None:
    _run(["systemctl", "--user", "start", unit_name])


def stop_unit(unit_name: str) -> None:
    _run(["systemctl", "--user", "stop", unit_name])


def restart_unit(unit_name: str) -> None:
    _run(["systemctl", "--user", "restart", unit_name])


def delete_unit_file(unit_name: str) -> None:
    """Remove a generated unit file; a missing file is not an error."""
    try:
        os.remove(os.path.join(output_location(), unit_name))
    except FileNotFoundError:
        pass


def get_logs(unit_name: str) -> bytes:
    """Journal output of the unit for the current boot."""
    return _run(
        ["journalctl", "--user", "-u", unit_name, "-I", "-t", unit_name, "-o", "cat"],
        capture=True,
    )