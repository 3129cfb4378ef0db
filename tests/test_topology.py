"""
Test kubestrap.cloud.topology
"""
import pytest

from kubestrap.cloud.topology import Node, Role, plan
from kubestrap.errors import ErrorKind, InvalidTopology, TopologyOverflow

from .testdata import NAUGHTY_STRINGS


def test_default_cluster():
    topology = plan("192.168.56.10", 3)

    assert topology.master == Node(Role.MASTER, "k8s-master",
                                   "192.168.56.10", 0)
    assert [w.ip for w in topology.workers] == [
        "192.168.56.11", "192.168.56.12", "192.168.56.13"]
    assert [w.hostname for w in topology.workers] == [
        "k8s-worker-1", "k8s-worker-2", "k8s-worker-3"]
    assert [w.index for w in topology.workers] == [1, 2, 3]
    assert topology.network_prefix == "192.168.56.0/24"
    assert topology.worker_count == 3


def test_addresses_are_unique_and_inside_prefix():
    topology = plan("10.0.0.2", 60, "10.0.0.0/26")

    ips = [n.ip for n in topology.nodes]
    assert len(set(ips)) == len(ips) == 61
    assert ips[0] == "10.0.0.2"
    assert ips[-1] == "10.0.0.62"


def test_zero_workers():
    topology = plan("192.168.56.10", 0)
    assert topology.workers == ()
    assert topology.nodes == (topology.master,)


def test_plan_is_deterministic():
    assert plan("192.168.56.10", 5, cluster_name="lab") == \
        plan("192.168.56.10", 5, cluster_name="lab")


def test_cluster_name_prefixes_hosts():
    topology = plan("192.168.56.10", 1, cluster_name="lab")
    assert topology.master.hostname == "lab-master"
    assert topology.workers[0].hostname == "lab-worker-1"
    assert topology.find("lab-worker-1") is topology.workers[0]
    assert topology.find("k8s-master") is None


def test_overflow_at_prefix_end():
    # .253 + 1 = .254 is the last usable address of the /24
    assert plan("192.168.56.253", 1).workers[0].ip == "192.168.56.254"

    with pytest.raises(TopologyOverflow) as err:
        plan("192.168.56.254", 2, "192.168.56.0/24")

    assert err.value.kind is ErrorKind.TOPOLOGY_OVERFLOW
    assert err.value.step == "plan"


def test_overflow_small_prefix():
    with pytest.raises(TopologyOverflow):
        plan("10.0.0.1", 3, "10.0.0.0/30")


@pytest.mark.parametrize("count", [-1, "3", 2.0, None, True])
def test_invalid_worker_count(count):
    with pytest.raises(InvalidTopology):
        plan("192.168.56.10", count)


@pytest.mark.parametrize("address", NAUGHTY_STRINGS + [None, 42])
def test_invalid_base_ip(address):
    with pytest.raises(InvalidTopology) as err:
        plan(address, 1)
    assert err.value.kind is ErrorKind.INVALID_TOPOLOGY


@pytest.mark.parametrize("base_ip,prefix", [
    ("192.168.57.10", "192.168.56.0/24"),
    ("192.168.56.0", "192.168.56.0/24"),
    ("192.168.56.255", "192.168.56.0/24"),
    ("192.168.56.10", "not-a-network"),
    ("fd00::10", "192.168.56.0/24"),
])
def test_base_ip_not_usable(base_ip, prefix):
    with pytest.raises(InvalidTopology):
        plan(base_ip, 1, prefix)


@pytest.mark.parametrize("name", ["", "bad:)chars", "x" * 245, "with space"])
def test_invalid_cluster_name(name):
    with pytest.raises(InvalidTopology):
        plan("192.168.56.10", 1, cluster_name=name)


def test_host_bits_of_prefix_are_ignored():
    topology = plan("192.168.56.10", 1, "192.168.56.77/24")
    assert topology.network_prefix == "192.168.56.0/24"


def test_ipv6():
    topology = plan("fd00::10", 2, "fd00::/64")
    assert [w.ip for w in topology.workers] == ["fd00::11", "fd00::12"]


def test_as_dict():
    data = plan("192.168.56.10", 1).as_dict()
    assert data == {
        'cluster-name': 'k8s',
        'network-prefix': '192.168.56.0/24',
        'master': {'role': 'master', 'hostname': 'k8s-master',
                   'ip': '192.168.56.10', 'index': 0},
        'workers': [{'role': 'worker', 'hostname': 'k8s-worker-1',
                     'ip': '192.168.56.11', 'index': 1}]}
