"""Loading container images into cluster nodes from the host or from an archive."""

from __future__ import annotations

import functools
import json
import logging
import os
import shutil
from collections.abc import Callable, Iterable, Sequence

from kindtool import nodeutil
from kindtool.cmdexec import command, output_lines
from kindtool.concurrent import until_error_concurrent
from kindtool.errors import errorf, wrap
from kindtool.fs import temp_dir
from kindtool.roles import Node

__all__ = [
    "remove_duplicates",
    "sanitize_image",
    "check_if_image_retag_required",
    "docker_image_id",
    "save_images",
    "load_image",
    "select_nodes",
    "load_docker_images",
    "load_image_archive_into_nodes",
]

_log = logging.getLogger(__name__)

TagFetcher = Callable[[Node, str], Iterable[str]]


def _quote(text: str) -> str:
    return json.dumps(text)


def remove_duplicates(items: Iterable[str]) -> list[str]:
    """Return items without repeats, keeping the first occurrence of each."""
    return list(dict.fromkeys(items))


def sanitize_image(image: str) -> str:
    """Return the fully qualified form of an image reference."""
    default_domain = "docker.io/"
    official_repo_name = "library"
    name = image
    if "/" not in image:
        name = official_repo_name + "/" + image
    head, sep, _ = name.partition("/")
    if not sep or (not any(c in head for c in ".:") and head != "localhost"):
        name = default_domain + name
    if ":" not in name:
        name += ":latest"
    return name


def check_if_image_retag_required(
    node: Node, image_id: str, image_name: str, tag_fetcher: TagFetcher
) -> tuple[bool, bool]:
    """Return (exists, retag_required) for image_id on node.

    The image exists when the node has any tag for its ID; a re-tag is
    required when none of those tags is image_name.
    """
    try:
        tags = set(tag_fetcher(node, image_id))
    except Exception:  # noqa: BLE001 - a failed lookup means "not present"
        return False, False
    if not tags:
        return False, False
    return True, sanitize_image(image_name) not in tags


def docker_image_id(name: str) -> str:
    """Return the ID of the local docker image name."""
    lines = output_lines(command("docker", "image", "inspect", "-f", "{{ .Id }}", name))
    if len(lines) != 1:
        raise errorf("Docker image ID should only be one line, got %d lines", len(lines))
    return lines[0]


def save_images(images: Sequence[str], dest: str) -> None:
    """Save images into the tarball dest, as ``docker save`` does."""
    command("docker", "save", "-o", dest, *images).run()


def load_image(tar_path: str, node: Node) -> None:
    """Load the image tarball at tar_path onto node."""
    try:
        archive = open(tar_path, "rb")
    except OSError as err:
        raise wrap(err, "failed to open image") from err
    with archive:
        nodeutil.load_image_archive(node, archive)


def _select_nodes(node_list: Sequence[Node], names: Sequence[str], quote: bool) -> list[Node]:
    if not names:
        return list(node_list)
    by_name = {str(node): node for node in node_list}
    selected = []
    for name in names:
        if name not in by_name:
            raise errorf("unknown node: %s", _quote(name) if quote else name)
        selected.append(by_name[name])
    return selected


def select_nodes(node_list: Sequence[Node], names: Sequence[str]) -> list[Node]:
    """Return the nodes named in names, or all nodes when names is empty."""
    return _select_nodes(node_list, names, quote=True)


def load_docker_images(
    node_list: Sequence[Node],
    image_names: Sequence[str],
    node_names: Sequence[str],
    logger: logging.Logger | None = None,
) -> None:
    """Load local docker images into the nodes that do not have them yet.

    Nodes that hold the image under another tag are re-tagged instead; if
    re-tagging fails the image is loaded into them as well.
    """
    log = logger or _log
    names = remove_duplicates(image_names)
    ids = []
    for name in names:
        try:
            ids.append(docker_image_id(name))
        except Exception as err:
            raise errorf("image: %s not present locally", _quote(name)) from err

    if not node_list:
        raise errorf("no nodes found for cluster")
    candidates = select_nodes(node_list, node_names)

    selected: list[Node] = []
    for name, wanted_id in zip(names, ids):
        processed = False
        for node in candidates:
            exists, retag_required = check_if_image_retag_required(
                node, wanted_id, name, nodeutil.image_tags
            )
            if exists and not retag_required:
                continue
            if retag_required:
                log.info(
                    "Image with ID: %s already present on the node %s but is missing the tag %s. re-tagging...",
                    wanted_id,
                    node,
                    name,
                )
                try:
                    nodeutil.retag_image(node, wanted_id, name)
                except Exception as err:  # noqa: BLE001 - fall back to loading
                    log.error(
                        "failed to re-tag image on the node %s due to an error %s. Will load it instead...",
                        node,
                        err,
                    )
                    selected.append(node)
                else:
                    processed = True
                continue
            try:
                found_id = nodeutil.image_id(node, name)
            except Exception:  # noqa: BLE001 - treated as absent
                found_id = None
            if found_id != wanted_id:
                selected.append(node)
                log.info(
                    "Image: %s with ID %s not yet present on node %s, loading...",
                    _quote(name),
                    _quote(wanted_id),
                    _quote(str(node)),
                )
        if not selected and not processed:
            log.info(
                "Image: %s with ID %s found to be already present on all nodes.",
                _quote(name),
                _quote(wanted_id),
            )

    if not selected:
        return

    try:
        directory = temp_dir("", "images-tar")
    except OSError as err:
        raise wrap(err, "failed to create tempdir") from err
    try:
        tar_path = os.path.join(directory, "images.tar")
        save_images(names, tar_path)
        until_error_concurrent([functools.partial(load_image, tar_path, node) for node in selected])
    finally:
        shutil.rmtree(directory, ignore_errors=True)


def load_image_archive_into_nodes(
    node_list: Sequence[Node], tar_path: str, node_names: Sequence[str]
) -> None:
    """Load the image archive at tar_path into the named nodes, or all of them."""
    os.stat(tar_path)
    if not node_list:
        raise errorf("no nodes found for cluster")
    selected = _select_nodes(node_list, node_names, quote=False)
    until_error_concurrent([functools.partial(load_image, tar_path, node) for node in selected])