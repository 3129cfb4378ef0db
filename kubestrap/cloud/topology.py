"""
Topology
========

Plan which address and host name every machine of the cluster gets.
The master receives the base address, worker ``i`` the base address plus
``i``. Planning is pure computation: the same input always produces the
same topology and nothing is provisioned here.
"""
import enum
from dataclasses import dataclass, field
from typing import Optional, Tuple

from netaddr import INET_PTON, IPAddress
from netaddr.core import AddrFormatError

from kubestrap import (DEFAULT_CLUSTER_NAME, MASTER_PREFIX, WORKER_PREFIX)
from kubestrap.errors import InvalidTopology, TopologyOverflow
from kubestrap.util.net import default_network, parse_network, usable_range
from kubestrap.util.util import host_names, name_validation


class Role(enum.Enum):
    """the role of a node, its value is handed to the bootstrap script"""
    MASTER = MASTER_PREFIX
    WORKER = WORKER_PREFIX

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class Node:
    """A single machine of the cluster.

    The master always has index 0, workers are numbered from 1.
    """
    role: Role
    hostname: str
    ip: str
    index: int = 0

    @property
    def is_master(self):
        return self.role is Role.MASTER

    def as_dict(self):
        return {'role': self.role.value, 'hostname': self.hostname,
                'ip': self.ip, 'index': self.index}


@dataclass(frozen=True)
class ClusterTopology:
    """The complete, immutable plan of a cluster."""
    master: Node
    network_prefix: str
    workers: Tuple[Node, ...] = field(default_factory=tuple)
    cluster_name: str = DEFAULT_CLUSTER_NAME

    @property
    def nodes(self):
        """all nodes, master first"""
        return (self.master,) + tuple(self.workers)

    @property
    def worker_count(self):
        return len(self.workers)

    def find(self, hostname):
        """return the node with the given host name or None"""
        return next((n for n in self.nodes if n.hostname == hostname), None)

    def as_dict(self):
        return {'cluster-name': self.cluster_name,
                'network-prefix': self.network_prefix,
                'master': self.master.as_dict(),
                'workers': [w.as_dict() for w in self.workers]}


def _parse_base_ip(base_ip):
    if not isinstance(base_ip, str):
        raise InvalidTopology(
            f"master address must be a string, got {base_ip!r}", step="plan")
    try:
        return IPAddress(base_ip, flags=INET_PTON)
    except (AddrFormatError, TypeError, ValueError) as exc:
        raise InvalidTopology(f"invalid master address {base_ip!r}: {exc}",
                              step="plan")


def plan(base_ip: str, worker_count: int,
         network_prefix: Optional[str] = None,
         cluster_name: str = DEFAULT_CLUSTER_NAME) -> ClusterTopology:
    """Compute the topology of a cluster.

    Args:
        base_ip (str): the address of the master, e.g. ``192.168.56.10``
        worker_count (int): the number of workers, may be 0
        network_prefix (str): a CIDR the nodes must fit in. Defaults to the
            /24 containing ``base_ip``.
        cluster_name (str): prefix for the host names

    Returns:
        A :class:`ClusterTopology`.

    Raises:
        InvalidTopology: if any of the arguments is malformed
        TopologyOverflow: if the workers don't fit into the network
    """
    if isinstance(worker_count, bool) or not isinstance(worker_count, int):
        raise InvalidTopology(
            f"worker count must be an integer, got {worker_count!r}",
            step="plan")
    if worker_count < 0:
        raise InvalidTopology(
            f"worker count must not be negative, got {worker_count}",
            step="plan")

    try:
        name_validation(cluster_name)
    except ValueError as exc:
        raise InvalidTopology(str(exc), step="plan")

    master_ip = _parse_base_ip(base_ip)

    if network_prefix is None:
        network = default_network(master_ip)
    else:
        try:
            network = parse_network(network_prefix)
        except ValueError as exc:
            raise InvalidTopology(str(exc), step="plan")

    if master_ip.version != network.version or master_ip not in network:
        raise InvalidTopology(
            f"master address {master_ip} is not part of {network}",
            step="plan")

    first, last = usable_range(network)
    if not first <= master_ip <= last:
        raise InvalidTopology(
            f"master address {master_ip} is not a usable host address "
            f"of {network}", step="plan")

    # the last worker address decides if the plan fits at all
    if int(master_ip) + worker_count > int(last):
        raise TopologyOverflow(
            f"{worker_count} workers starting after {master_ip} don't fit "
            f"into {network}, last usable address is {last}", step="plan")

    master = Node(Role.MASTER, "%s-%s" % (cluster_name, MASTER_PREFIX),
                  str(master_ip), 0)
    names = host_names(WORKER_PREFIX, worker_count, cluster_name)
    workers = tuple(Node(Role.WORKER, name, str(master_ip + idx), idx)
                    for idx, name in enumerate(names, start=1))

    return ClusterTopology(master=master,
                           network_prefix=str(network),
                           workers=workers,
                           cluster_name=cluster_name)
