import io
import os

import pytest

from otari import utils


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    root = tmp_path.resolve() / "otari" / "internal" / "utils"
    root.mkdir(parents=True)
    monkeypatch.chdir(root)
    return root


@pytest.mark.parametrize(
    "given, parts",
    [
        ("relative/path/to/file", ("relative", "path", "to", "file")),
        ("", ()),
        (".", ()),
        ("./", ()),
    ],
)
def test_get_absolute_path_relative(workdir, given, parts):
    assert utils.get_absolute_path(given) == str(workdir.joinpath(*parts))


def test_get_absolute_path_parent(workdir):
    assert utils.get_absolute_path("..") == str(workdir.parent)


def test_get_absolute_path_absolute_unchanged(workdir):
    assert utils.get_absolute_path("/absolute/path/to/file") == "/absolute/path/to/file"


@pytest.mark.parametrize(
    "path, name",
    [
        ("otari.yaml", "otari"),
        ("/srv/stacks/web.stack.yml", "web.stack"),
        ("plain", "plain"),
        ("dir/compose.yaml/", "compose"),
    ],
)
def test_stack_name_from_path(path, name):
    assert utils.stack_name_from_path(path) == name


def test_default_stack_path_prefers_yaml(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert utils.default_stack_path() == "otari.yml"
    (tmp_path / "otari.yaml").write_text("containers: {}\n")
    assert utils.default_stack_path() == "otari.yaml"


def test_write_section_format():
    buf = io.StringIO()
    utils.write_section(buf, "Unit", [("Description", "web container"), ("After", "db")])
    utils.write_empty_line(buf)
    assert buf.getvalue() == "[Unit]\nDescription=web container\nAfter=db\n\n"


def test_write_header_and_value():
    buf = io.StringIO()
    utils.write_header(buf, "Volume")
    utils.write_value(buf, "VolumeName", "data")
    assert buf.getvalue() == "[Volume]\nVolumeName=data\n"


def test_write_to_file_round_trip(tmp_path):
    utils.write_to_file(str(tmp_path), "web.container", b"[Unit]\n")
    target = tmp_path / "web.container"
    assert target.read_bytes() == b"[Unit]\n"
    assert not (tmp_path / "web.container.tmp").exists()


def test_write_file_atomic_overwrites(tmp_path):
    target = tmp_path / "unit"
    utils.write_file_atomic(str(target), b"first", 0o644)
    utils.write_file_atomic(str(target), "second", 0o644)
    assert target.read_text() == "second"


def test_path_exists(tmp_path):
    assert utils.path_exists(str(tmp_path)) is True
    assert utils.path_exists(str(tmp_path / "missing")) is False


@pytest.mark.parametrize("text, empty", [("", True), ("   \t\n", True), (" a ", False)])
def test_is_string_empty(text, empty):
    assert utils.is_string_empty(text) is empty


def test_output_location_uses_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    expected = os.path.join(str(tmp_path), ".config", "containers", "systemd")
    assert utils.output_location() == expected


def test_messages_without_colour(monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    assert utils.success("done") == "[+] done"
    assert utils.error("bad") == "[x] bad"
    assert utils.info("note") == "[i] note"


class _FakeTerminal(io.StringIO):
    def isatty(self):
        return True


def test_messages_with_colour(monkeypatch):
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.setenv("TERM", "xterm")
    monkeypatch.setattr("sys.stdout", _FakeTerminal())
    assert utils.error("bad") == "\x1b[31;1m[x]\x1b[0m bad"
    assert utils.paint("logo", utils.Color.MAGENTA, utils.Color.BOLD) == "\x1b[35;1mlogo\x1b[0m"
    assert utils.paint("plain") == "plain"