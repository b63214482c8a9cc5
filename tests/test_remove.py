import os
import stat
from pathlib import Path

import pytest

from otari.commands.remove import remove

PODMAN_SCRIPT = """#!/bin/sh
echo "podman $*" >> "$FAKE_LOG"
if [ "$1" = "ps" ]; then
  printf '%s\\n' $FAKE_ACTIVE
fi
exit 0
"""

SYSTEMCTL_SCRIPT = """#!/bin/sh
echo "systemctl $*" >> "$FAKE_LOG"
exit ${FAKE_SYSTEMCTL_STATUS:-0}
"""

STACK = """
containers:
  web:
    image: nginx:latest
    volumes:
      - data:/var/lib/data
    networks:
      - net
volumes:
  data:
  keep:
    persist_on_remove: true
networks:
  net:
"""


def _write_exe(path: Path, body: str) -> None:
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


@pytest.fixture
def env(tmp_path, monkeypatch):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    _write_exe(bin_dir / "podman", PODMAN_SCRIPT)
    _write_exe(bin_dir / "systemctl", SYSTEMCTL_SCRIPT)
    home = tmp_path / "home"
    unit_dir = home / ".config" / "containers" / "systemd"
    unit_dir.mkdir(parents=True)
    work = tmp_path / "work"
    work.mkdir()
    log = tmp_path / "calls.log"
    log.write_text("")
    monkeypatch.setenv("PATH", str(bin_dir))
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("FAKE_LOG", str(log))
    monkeypatch.setenv("FAKE_ACTIVE", "")
    monkeypatch.chdir(work)
    stack_file = work / "mystack.yaml"
    stack_file.write_text(STACK)
    for unit in ("web.container", "data.volume", "keep.volume", "net.network"):
        (unit_dir / unit).write_text("[Unit]\n")
    return {"units": unit_dir, "work": work, "log": log, "stack": str(stack_file)}


def test_missing_file_exits(tmp_path, capsys):
    missing = str(tmp_path / "absent.yaml")
    with pytest.raises(SystemExit) as exc:
        remove(missing)
    assert exc.value.code == 1
    assert "Failed to read " + missing in capsys.readouterr().out


def test_invalid_definition_exits(tmp_path, capsys):
    path = tmp_path / "bad.yaml"
    path.write_text("containers:\n  - a\n  - b\n")
    with pytest.raises(SystemExit) as exc:
        remove(str(path))
    assert exc.value.code == 1
    assert "Failed to parse stack definition" in capsys.readouterr().out


def test_podman_unavailable_exits(tmp_path, monkeypatch, capsys):
    empty = tmp_path / "empty"
    empty.mkdir()
    monkeypatch.setenv("PATH", str(empty))
    path = tmp_path / "s.yaml"
    path.write_text(STACK)
    with pytest.raises(SystemExit) as exc:
        remove(str(path))
    assert exc.value.code == 1
    assert "Failed to get active containers." in capsys.readouterr().out


def test_remove_stopped_stack(env, capsys):
    lock = env["work"] / "mystack.lock"
    lock.write_text("version = 1\n")
    remove(env["stack"])
    out = capsys.readouterr().out
    units = env["units"]
    assert not (units / "web.container").exists()
    assert not (units / "data.volume").exists()
    assert not (units / "net.network").exists()
    assert (units / "keep.volume").exists()
    assert not lock.exists()
    assert "Container 'web' is already stopped." in out
    assert "Stack 'mystack' removed successfully." in out
    calls = env["log"].read_text()
    assert "volume rm -f data" in calls
    assert "network rm -f net" in calls
    assert "keep" not in calls


def test_volume_of_running_container_is_kept(env, monkeypatch, capsys):
    monkeypatch.setenv("FAKE_ACTIVE", "web")
    remove(env["stack"])
    out = capsys.readouterr().out
    units = env["units"]
    assert "Volume 'data' is still in use." in out
    assert "Network 'net' is still in use." in out
    assert (units / "data.volume").exists()
    assert (units / "net.network").exists()
    assert not (units / "web.container").exists()
    calls = env["log"].read_text()
    assert "stop web" in calls
    assert "volume rm" not in calls


def test_failed_stop_exits(env, monkeypatch, capsys):
    monkeypatch.setenv("FAKE_ACTIVE", "web")
    monkeypatch.setenv("FAKE_SYSTEMCTL_STATUS", "1")
    with pytest.raises(SystemExit) as exc:
        remove(env["stack"])
    assert exc.value.code == 1
    out = capsys.readouterr().out
    assert "Failed to stop container 'web'" in out
    assert (env["units"] / "web.container").exists()
    assert os.path.exists(env["stack"])