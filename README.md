# otari

A small container orchestration tool. You describe a stack of containers,
volumes and networks in a YAML file; otari turns it into Podman quadlet unit
files, lets the user instance of systemd run them, and keeps a lock file so
that later runs only regenerate what changed.

## Requirements

- Linux with systemd running
- Podman 4.4.0 or newer
- User lingering enabled (`sudo loginctl enable-linger $USER`)

Every command except `version` checks these first and exits with status 1 if
one is missing.

## Installation

```
pip install .
```

## The stack file

By default otari reads `otari.yaml` in the current directory, falling back to
`otari.yml`. The stack's name is the file name without its extension.

```yaml
containers:
  web:
    image: docker.io/library/nginx:latest
    ports:
      - "8080:80"
    environment:
      - MODE=production
    volumes:
      - data:/usr/share/nginx/html:ro
    networks:
      - frontend
    restart: unless-stopped
    depends:
      - app
  app:
    build: ./app
    restart: on-failure:3

volumes:
  data:
    persist_on_remove: true

networks:
  frontend:
    driver: bridge
```

Notes:

- `environment`, `labels` and build `args` take either a mapping or a list of
  `KEY=VALUE` strings.
- `entrypoint` takes a string or a list of strings, joined with spaces.
- `image` is a reference of the form `[registry/][project/]name[:tag|@sha256:digest]`.
- `ports` entries have the form `[IP:]HOST[-END][:CONTAINER[-END]][/tcp|udp]`;
  the address defaults to `0.0.0.0` and the protocol to `tcp`.
- `volumes` entries have the form `SOURCE:DESTINATION[:OPTIONS]`, where the
  options are a comma-separated list of `rw`, `ro`, `z` and `Z`. A source that
  is not a defined volume but an existing host path becomes a bind mount.
- `build` takes a context path, or a mapping with `context`, `containerfile`,
  `tags`, `args` and `target`. Without a `containerfile`, `Containerfile` in
  the context is used, else `Dockerfile`. The built image is named
  `<stack>_<container>`.
- `restart` is one of `always`, `no`, `unless-stopped`, `on-failure` or
  `on-failure:N`; any other value is read as `on-failure`.
- Network `driver` is one of `bridge`, `host`, `ipvlan` or `macvlan`; other
  names fall back to `bridge`. A `host` network gets no unit file and its
  containers run with `Network=host`.

Before `start` does anything, the stack is checked for undefined networks,
volumes and dependencies, circular dependencies, host port conflicts, host
networks combined with port mappings, and duplicate mount points.

## Commands

```
otari start [-f FILE]       # validate, pull/build images, write quadlets, start containers
otari stop [-f FILE]        # stop the stack's running containers
otari remove [-f FILE]      # stop and remove containers, volumes and networks
otari logs [-f FILE] NAME   # show the journal for one container
otari version               # print version information
```

Quadlet files are written to `~/.config/containers/systemd`. After `start`,
a `<stack>.lock` file in the working directory records a hash of every
resource; the next `start` regenerates only what differs from it and deletes
the unit files of resources that left the stack. `remove` deletes the lock
file, and keeps volumes and networks marked `persist_on_remove: true` as well
as any that a still-running container uses.

## Using it from Python

The pieces are importable on their own:

- `otari.definition.parse(data)` / `load_stack(path)` read a stack into a
  `Stack` of `Container`, `Volume` and `Network` objects.
- `otari.rules.validate(stack)` returns a list of `RuleError`.
- `otari.quadlets.generator()` returns a `QuadletGenerator` whose
  `generate_container`, `generate_network` and `generate_volume` return unit
  file contents as bytes.
- `otari.changes.detect_changes(stack)` compares a stack with its lock file;
  `save_stack_data(stack)` writes the lock file.

## What it does not do

- `logs` needs a container name; there is no combined log view of a stack.
- There is no status or listing command, and no health checks.
- It manages only user-level systemd units, never system-wide ones.