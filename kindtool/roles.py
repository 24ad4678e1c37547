"""Selecting cluster nodes by the role they play."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from kindtool.cmdexec import Cmd
from kindtool.errors import errorf, wrap

__all__ = [
    "CONTROL_PLANE_ROLE",
    "WORKER_ROLE",
    "EXTERNAL_LOAD_BALANCER_ROLE",
    "Node",
    "select_nodes_by_role",
    "internal_nodes",
    "external_load_balancer_node",
    "api_server_endpoint_node",
    "control_plane_nodes",
    "bootstrap_control_plane_node",
    "secondary_control_plane_nodes",
]

CONTROL_PLANE_ROLE = "control-plane"
WORKER_ROLE = "worker"
EXTERNAL_LOAD_BALANCER_ROLE = "external-load-balancer"


class Node(Protocol):
    """A cluster node; its string form is its name."""

    def role(self) -> str:
        """Return the role of the node."""

    def command(self, name: str, *args: str) -> Cmd:
        """Return a command that runs on the node."""

    def __str__(self) -> str:
        """Return the node name."""


def select_nodes_by_role(all_nodes: Iterable[Node], role: str) -> list[Node]:
    """Return the nodes whose role is role."""
    return [node for node in all_nodes if node.role() == role]


def internal_nodes(all_nodes: Iterable[Node]) -> list[Node]:
    """Return the Kubernetes nodes, leaving out e.g. an external load balancer."""
    return [node for node in all_nodes if node.role() in (WORKER_ROLE, CONTROL_PLANE_ROLE)]


def external_load_balancer_node(all_nodes: Iterable[Node]) -> Node | None:
    """Return the external load balancer node, or None if there is none."""
    balancers = select_nodes_by_role(all_nodes, EXTERNAL_LOAD_BALANCER_ROLE)
    if not balancers:
        return None
    if len(balancers) > 1:
        raise errorf(
            "unexpected number of %s nodes %d", EXTERNAL_LOAD_BALANCER_ROLE, len(balancers)
        )
    return balancers[0]


def api_server_endpoint_node(all_nodes: Iterable[Node]) -> Node:
    """Return the node hosting the API server endpoint.

    That is the load balancer when there is one, otherwise the single
    control plane node.
    """
    nodes = list(all_nodes)
    try:
        balancer = external_load_balancer_node(nodes)
    except Exception as err:
        raise wrap(err, "failed to find api-server endpoint node") from err
    if balancer is not None:
        return balancer
    try:
        control_planes = control_plane_nodes(nodes)
    except Exception as err:
        raise wrap(err, "failed to find api-server endpoint node") from err
    if len(control_planes) != 1:
        raise errorf(
            "expected one control plane node or a load balancer, not %d and none",
            len(control_planes),
        )
    return control_planes[0]


def control_plane_nodes(all_nodes: Iterable[Node]) -> list[Node]:
    """Return the control plane nodes sorted by name; the first is the bootstrap node."""
    return sorted(select_nodes_by_role(all_nodes, CONTROL_PLANE_ROLE), key=str)


def bootstrap_control_plane_node(all_nodes: Iterable[Node]) -> Node:
    """Return the bootstrap control plane node."""
    control_planes = control_plane_nodes(all_nodes)
    if not control_planes:
        raise errorf("expected at least one %s node", CONTROL_PLANE_ROLE)
    return control_planes[0]


def secondary_control_plane_nodes(all_nodes: Iterable[Node]) -> list[Node]:
    """Return the control plane nodes other than the bootstrap node."""
    control_planes = control_plane_nodes(all_nodes)
    if not control_planes:
        raise errorf("expected at least one %s node", CONTROL_PLANE_ROLE)
    return control_planes[1:]