"""Operations performed on a node by running commands inside it."""

from __future__ import annotations

import io
import json
import posixpath
import tomllib
from typing import IO, Any

from kindtool.cmdexec import output, output_lines
from kindtool.errors import errorf, new, wrap, wrapf
from kindtool.roles import Node

__all__ = [
    "kube_version",
    "write_file",
    "copy_node_to_node",
    "load_image_archive",
    "parse_snapshotter",
    "image_id",
    "image_tags",
    "retag_image",
]

_SNAPSHOTTER_PATH = ("plugins", "io.containerd.grpc.v1.cri", "containerd", "snapshotter")


def _quote(text: str) -> str:
    return json.dumps(text)


def _parent(path: str) -> str:
    return posixpath.normpath(posixpath.dirname(path))


def kube_version(node: Node) -> str:
    """Return the Kubernetes version installed on the node."""
    try:
        lines = output_lines(node.command("cat", "/kind/version"))
    except Exception as err:
        raise wrap(err, "failed to get file") from err
    if len(lines) != 1:
        raise errorf("file should only be one line, got %d lines", len(lines))
    return lines[0]


def write_file(node: Node, dest: str, content: str) -> None:
    """Write content to dest on the node, creating its directory."""
    directory = _parent(dest)
    try:
        node.command("mkdir", "-p", directory).run()
    except Exception as err:
        raise wrapf(err, "failed to create directory %s", directory) from err
    node.command("cp", "/dev/stdin", dest).set_stdin(io.BytesIO(content.encode("utf-8"))).run()


def copy_node_to_node(a: Node, b: Node, file: str) -> None:
    """Copy file from node a to the same path on node b."""
    directory = _parent(file)
    try:
        b.command("mkdir", "-p", directory).run()
    except Exception as err:
        raise wrapf(err, "failed to create directory %s", _quote(directory)) from err
    buffer = io.BytesIO()
    try:
        a.command("cat", file).set_stdout(buffer).run()
    except Exception as err:
        raise wrapf(err, "failed to read %s from node", _quote(file)) from err
    buffer.seek(0)
    try:
        b.command("cp", "/dev/stdin", file).set_stdin(buffer).run()
    except Exception as err:
        raise wrapf(err, "failed to write %s to node", _quote(file)) from err


def load_image_archive(node: Node, image: IO[Any]) -> None:
    """Import the image archive read from image into the node's containerd."""
    snapshotter = _get_snapshotter(node)
    cmd = node.command(
        "ctr",
        "--namespace=k8s.io",
        "images",
        "import",
        "--digests",
        "--snapshotter=" + snapshotter,
        "-",
    ).set_stdin(image)
    try:
        cmd.run()
    except Exception as err:
        raise wrap(err, "failed to load image") from err


def _get_snapshotter(node: Node) -> str:
    try:
        out = output(node.command("containerd", "config", "dump"))
    except Exception as err:
        raise wrap(err, "failed to detect containerd snapshotter") from err
    return parse_snapshotter(out.decode("utf-8", "replace"))


def parse_snapshotter(config: str) -> str:
    """Return the CRI snapshotter named in a containerd TOML config."""
    try:
        value: Any = tomllib.loads(config)
    except tomllib.TOMLDecodeError as err:
        raise wrap(err, "failed to detect containerd snapshotter") from err
    for key in _SNAPSHOTTER_PATH:
        value = value.get(key) if isinstance(value, dict) else None
    if not isinstance(value, str):
        raise new("failed to detect containerd snapshotter")
    return value


def _inspect_image(node: Node, image: str) -> dict[str, Any]:
    buffer = io.BytesIO()
    node.command("crictl", "inspecti", image).set_stdout(buffer).run()
    data = json.loads(buffer.getvalue())
    status = data.get("status") if isinstance(data, dict) else None
    return status if isinstance(status, dict) else {}


def image_id(node: Node, image: str) -> str:
    """Return the ID of image on the node."""
    value = _inspect_image(node, image).get("id")
    return value if isinstance(value, str) else ""


def image_tags(node: Node, image_id: str) -> set[str]:
    """Return the repository tags pointing at image_id on the node."""
    tags = _inspect_image(node, image_id).get("repoTags") or []
    return set(tags)


def retag_image(node: Node, image_id: str, image_name: str) -> None:
    """Tag image_id on the node as image_name."""
    node.command(
        "ctr", "--namespace=k8s.io", "images", "tag", "--force", image_id, image_name
    ).set_stdout(io.BytesIO()).run()