import subprocess
import textwrap
from unittest.mock import patch

import pytest

from otari.definition import (
    Container,
    Network,
    NetworkDriver,
    Stack,
    Volume,
    load_stack,
    parse,
    parse_network_driver,
)
from otari.fields import DefinitionError, Image, RestartPolicy, parse_port
from otari.hasher import marshal_hashable
from otari.systemd import SystemdError


def _container(body):
    doc = "containers:\n  app:\n" + textwrap.indent(textwrap.dedent(body), "    ")
    return parse(doc).containers["app"]


@pytest.mark.parametrize(
    "body, expected",
    [
        (
            """\
            image: nginx:latest
            environment:
              VAR1: value1
              VAR2: value2
            """,
            Container(
                container_name="app",
                image=Image(image="nginx", tag="latest"),
                environment={"VAR1": "value1", "VAR2": "value2"},
            ),
        ),
        (
            """\
            image: redis:alpine
            environment:
              - VAR1=value1
              - VAR2=value2
            """,
            Container(
                container_name="app",
                image=Image(image="redis", tag="alpine"),
                environment={"VAR1": "value1", "VAR2": "value2"},
            ),
        ),
        (
            "image: postgres:latest\n",
            Container(container_name="app", image=Image(image="postgres", tag="latest")),
        ),
        (
            """\
            image: alpine:latest
            entrypoint: /bin/sh
            """,
            Container(container_name="app", image=Image(image="alpine", tag="latest"), entrypoint="/bin/sh"),
        ),
        (
            """\
            image: alpine:latest
            entrypoint:
              - /bin/sh
              - -c
            """,
            Container(container_name="app", image=Image(image="alpine", tag="latest"), entrypoint="/bin/sh -c"),
        ),
    ],
)
def test_container_from_yaml(body, expected):
    assert _container(body) == expected


def test_scalar_text_is_preserved():
    container = _container(
        """\
        image: app
        environment:
          PORT: 8080
          CODE: 010
          DEBUG: true
        ports:
          - "8080:80"
          - 9000:90
        """
    )
    assert container.environment == {"PORT": "8080", "CODE": "010", "DEBUG": "true"}
    assert container.ports == [parse_port("8080:80"), parse_port("9000:90")]


def test_container_fields():
    container = _container(
        """\
        build: ./app
        init: true
        restart: on-failure:3
        networks: [front]
        volumes:
          - data:/var/lib/data:ro
        depends: [db]
        labels:
          - tier=web
        """
    )
    assert container.build.context == "./app"
    assert container.init is True
    assert container.restart_policy == RestartPolicy("on-failure", 3)
    assert container.networks == ["front"]
    assert str(container.volumes[0]) == "data:/var/lib/data:ro"
    assert container.depends == ["db"]
    assert container.labels == {"tier": "web"}


def test_bad_boolean_is_rejected():
    with pytest.raises(DefinitionError):
        _container("image: app\ninit: maybe\n")


def test_invalid_image_in_stack():
    with pytest.raises(DefinitionError):
        _container("image: not a valid image\n")


def test_container_must_be_mapping():
    with pytest.raises(DefinitionError):
        parse("containers:\n  web: 5\n")


def test_parse_names_resources():
    stack = parse(
        textwrap.dedent(
            """\
            containers:
              web:
                image: nginx
            volumes:
              data:
              keep:
                persist_on_remove: true
            networks:
              front:
              hostnet:
                driver: host
            """
        )
    )
    assert stack.containers["web"].container_name == "web"
    assert stack.volumes == {"data": Volume("data"), "keep": Volume("keep", True)}
    assert stack.networks == {
        "front": Network("front"),
        "hostnet": Network("hostnet", NetworkDriver.HOST),
    }


def test_parse_empty_document():
    assert parse("") == Stack()


def test_parse_invalid_yaml():
    with pytest.raises(DefinitionError):
        parse("containers: [unclosed\n")


def test_parse_top_level_must_be_mapping():
    with pytest.raises(DefinitionError):
        parse("- a\n- b\n")


def test_load_stack(tmp_path):
    path = tmp_path / "otari.yaml"
    path.write_text("containers:\n  db:\n    image: postgres:16\n")
    stack = load_stack(str(path))
    assert stack.containers["db"].image == Image(image="postgres", tag="16")


@pytest.mark.parametrize(
    "value, expected",
    [
        ("bridge", NetworkDriver.BRIDGE),
        ("host", NetworkDriver.HOST),
        ("ipvlan", NetworkDriver.OVERLAY),
        ("macvlan", NetworkDriver.MACVLAN),
        ("weird", NetworkDriver.BRIDGE),
    ],
)
def test_parse_network_driver(value, expected):
    assert parse_network_driver(value) is expected


def test_network_hash_depends_on_driver():
    assert marshal_hashable(Network("n")) != marshal_hashable(Network("n", NetworkDriver.HOST))
    assert marshal_hashable(Network("n", NetworkDriver.HOST)) == marshal_hashable(Network("n", NetworkDriver.HOST))


def test_volume_hash_ignores_persistence():
    assert marshal_hashable(Volume("v")) == marshal_hashable(Volume("v", True))
    assert marshal_hashable(Volume("v")) != marshal_hashable(Volume("w"))


def test_container_hash_tracks_changes():
    first = _container("image: nginx\nenvironment: {A: '1'}\n")
    same = _container("image: nginx\nenvironment: {A: '1'}\n")
    changed = _container("image: nginx\nenvironment: {A: '2'}\n")
    assert marshal_hashable(first) == marshal_hashable(same)
    assert marshal_hashable(first) != marshal_hashable(changed)


@patch("subprocess.run")
def test_container_start(mock_run):
    result = Container(container_name="web").start()
    assert result is None
    assert mock_run.call_args.args[0] == ["systemctl", "--user", "start", "web"]


@patch("subprocess.run")
def test_container_remove(mock_run, tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    unit_dir = tmp_path / ".config" / "containers" / "systemd"
    unit_dir.mkdir(parents=True)
    unit = unit_dir / "web.container"
    unit.write_text("[Unit]\n")
    result = Container(container_name="web").remove()
    assert result is None
    assert not unit.exists()
    assert mock_run.call_args_list[0].args[0] == ["systemctl", "--user", "stop", "web"]


@patch("subprocess.run")
def test_container_remove_stops_on_failure(mock_run, tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    unit_dir = tmp_path / ".config" / "containers" / "systemd"
    unit_dir.mkdir(parents=True)
    unit = unit_dir / "web.container"
    unit.write_text("[Unit]\n")
    mock_run.side_effect = subprocess.CalledProcessError(1, ["systemctl"])
    with pytest.raises(SystemdError):
        Container(container_name="web").remove()
    assert unit.exists()