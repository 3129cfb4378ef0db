"""
This module renders the ``Vagrantfile`` describing the machines of a
planned cluster. Vagrant only creates the machines, the bootstrap script
is uploaded and run by the orchestrator afterwards, so no provisioners
are defined here.
"""
import textwrap
from datetime import datetime

from kubestrap import __version__

DEFAULT_BOX = "ubuntu/jammy64"
DEFAULT_MEMORY = 2048
DEFAULT_CPUS = 2

GENERATED_MARKER = "generated by kubestrap"


def is_generated(path):
    """True if the Vagrantfile at ``path`` was written by kubestrap"""
    with open(path, "r", errors="replace") as fh:
        head = fh.read(512)
    return GENERATED_MARKER in head


class Vagrantfile:
    """
    Args:
        topology (ClusterTopology): the planned cluster
        box (str): the vagrant box all machines are created from
        memory (int): MiB of memory per machine
        cpus (int): CPUs per machine

    A master needs at least 2 CPUs for ``kubeadm init`` to pass its
    preflight checks, workers get the same size.
    """

    def __init__(self, topology, box=DEFAULT_BOX, memory=DEFAULT_MEMORY,
                 cpus=DEFAULT_CPUS):
        self.topology = topology
        self.box = box
        self.memory = int(memory)
        self.cpus = int(cpus)

    def _header(self):
        return textwrap.dedent("""\
        # -*- mode: ruby -*-
        # vi: set ft=ruby :
        #
        # {} {} on {}
        # cluster {} in {}
        """).format(GENERATED_MARKER,
                    __version__,
                    datetime.strftime(datetime.now(), "%c"),
                    self.topology.cluster_name,
                    self.topology.network_prefix)

    def machine(self, node):
        """the ``config.vm.define`` block of a single node"""
        return textwrap.indent(textwrap.dedent("""\
        config.vm.define "{name}"{primary} do |node|
          node.vm.hostname = "{name}"
          node.vm.network "private_network", ip: "{ip}"
          node.vm.provider "virtualbox" do |vb|
            vb.name = "{name}"
            vb.memory = {memory}
            vb.cpus = {cpus}
          end
        end
        """).format(name=node.hostname,
                    primary=", primary: true" if node.is_master else "",
                    ip=node.ip,
                    memory=self.memory,
                    cpus=self.cpus), "  ")

    def __str__(self):
        parts = [self._header(),
                 'Vagrant.configure("2") do |config|\n',
                 '  config.vm.box = "%s"\n' % self.box,
                 '  config.vm.synced_folder ".", "/vagrant"\n']
        for node in self.topology.nodes:
            parts.append("\n")
            parts.append(self.machine(node))
        parts.append("end\n")
        return "".join(parts)

    def write(self, path):
        """write the rendered Vagrantfile to ``path``"""
        with open(path, "w") as fh:
            fh.write(str(self))
        return path
