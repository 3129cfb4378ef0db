"""
Provisioner backends
====================

The orchestrator needs exactly three things from a machine backend:
create (or find) a machine for a node, upload the bootstrap script to
it, and run that script as root. Any hypervisor CLI, cloud API or
container runtime can implement :class:`Provisioner`.

All calls are blocking, the coordinator runs them in worker threads.
"""
import abc
import hashlib
import itertools
import os
import threading
import time
from collections import namedtuple
from dataclasses import dataclass, field
from typing import Any, Dict

from kubestrap import API_SERVER_PORT
from kubestrap.deploy.join import create_bootstrap_token
from kubestrap.errors import BootstrapFailed, TransferFailed
from kubestrap.ssl import (b64_cert, b64_key, create_ca, create_key,
                           create_signed, discovery_hash)
from kubestrap.util.logger import Logger
from kubestrap.util.util import get_kubeconfig_yaml

LOGGER = Logger(__name__)


@dataclass
class MachineHandle:
    """A backend's reference to a machine.

    Attributes:
        name (str): the machine name, equal to the node's host name
        node (Node): the node the machine was created for
        data (dict): backend specific details
    """
    name: str
    node: Any
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExitStatus:
    """exit code and captured output of a privileged command"""
    code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self):
        return self.code == 0


class Provisioner(abc.ABC):
    """The contract between the orchestrator and a machine backend."""

    name = "abstract"

    def prepare(self, topology):  # pylint: disable=unused-argument
        """Called once per run before any machine is touched.

        Backends which need to know the whole cluster up front (e.g. to
        render a Vagrantfile) can override this.
        """
        return None

    @abc.abstractmethod
    def ensure_machine(self, node) -> MachineHandle:
        """Create a machine for ``node`` or return the existing one.

        Must be idempotent.

        Raises:
            BootstrapFailed if the machine can't be brought up.
        """

    @abc.abstractmethod
    def upload(self, handle, local_path, remote_path):
        """Copy ``local_path`` to ``remote_path`` on the machine.

        Raises:
            TransferFailed on network or file system errors.
        """

    @abc.abstractmethod
    def run_privileged(self, handle, command, args) -> ExitStatus:
        """Run ``command`` with ``args`` as root on the machine."""


Call = namedtuple("Call", ["seq", "op", "hostname", "detail"])


class DummyProvider(Provisioner):
    """A provisioner which only pretends.

    Every call is recorded in :attr:`calls` together with a global
    sequence number, so the order of operations across threads can be
    inspected afterwards.

    Args:
        workdir (str): if given, a master run writes an ``admin.conf``
            there, signed by a fresh CA whose discovery hash matches the
            printed join command.
        upload_failures (dict): hostname -> number of uploads failing
            with ``TransferFailed`` before one succeeds
        exit_codes (dict): hostname -> exit code of the bootstrap run
        outputs (dict): hostname -> stdout replacing the generated one
        delays (dict): hostname -> seconds the bootstrap run takes
        machine_failures (iterable): hostnames whose machine can't be
            created
    """

    name = "dummy"

    # pylint: disable=too-many-arguments
    def __init__(self, workdir=None, upload_failures=None, exit_codes=None,
                 outputs=None, delays=None, machine_failures=()):
        self.workdir = workdir
        self.upload_failures = dict(upload_failures or {})
        self.exit_codes = dict(exit_codes or {})
        self.outputs = dict(outputs or {})
        self.delays = dict(delays or {})
        self.machine_failures = set(machine_failures)
        self.machines = {}
        self.calls = []
        self.topology = None
        self._lock = threading.Lock()
        self._seq = itertools.count()

    def _record(self, op, hostname, detail=None):
        with self._lock:
            self.calls.append(Call(next(self._seq), op, hostname, detail))

    def calls_for(self, hostname, op=None):
        """all recorded calls for a host, optionally of a single kind"""
        with self._lock:
            return [c for c in self.calls if c.hostname == hostname and
                    (op is None or c.op == op)]

    def prepare(self, topology):
        self.topology = topology
        self._record("prepare", None, topology.cluster_name)

    def ensure_machine(self, node):
        self._record("ensure_machine", node.hostname)
        if node.hostname in self.machine_failures:
            raise BootstrapFailed("machine could not be created",
                                  node=node.hostname, step="ensure_machine")
        with self._lock:
            if node.hostname not in self.machines:
                self.machines[node.hostname] = MachineHandle(
                    node.hostname, node, {"ip": node.ip})
            return self.machines[node.hostname]

    def upload(self, handle, local_path, remote_path):
        self._record("upload", handle.name, (local_path, remote_path))
        with self._lock:
            remaining = self.upload_failures.get(handle.name, 0)
            if remaining:
                self.upload_failures[handle.name] = remaining - 1
        if remaining:
            raise TransferFailed("simulated transfer error",
                                 node=handle.name, step="upload")

    def run_privileged(self, handle, command, args):
        args = list(args)
        self._record("run_privileged", handle.name, [command] + args)

        delay = self.delays.get(handle.name)
        if delay:
            time.sleep(delay)

        code = self.exit_codes.get(handle.name, 0)
        if handle.name in self.outputs:
            return ExitStatus(code, self.outputs[handle.name])

        if args and args[0] == "master" and code == 0:
            return ExitStatus(code, self._master_output(handle, args))

        return ExitStatus(code, "%s joined the cluster\n" % handle.name)

    def _master_output(self, handle, args):
        master_ip = args[1] if len(args) > 1 else handle.node.ip
        endpoint = "%s:%d" % (master_ip, API_SERVER_PORT)

        if self.workdir:
            dhash = self._write_admin_conf(endpoint)
        else:
            dhash = hashlib.sha256(handle.name.encode()).hexdigest()

        return ("Your Kubernetes control-plane has initialized "
                "successfully!\n\n"
                "kubeadm join %s --token %s \\\n"
                "\t--discovery-token-ca-cert-hash sha256:%s\n" % (
                    endpoint, create_bootstrap_token(), dhash))

    def _write_admin_conf(self, endpoint):
        ca_key = create_key()
        ca_cert = create_ca(ca_key)
        client_key = create_key()
        client_cert = create_signed(ca_key, ca_cert, client_key.public_key(),
                                    "kubernetes-admin", "system:masters")
        kubeconfig = get_kubeconfig_yaml("https://%s" % endpoint,
                                         b64_cert(ca_cert),
                                         "kubernetes-admin",
                                         b64_cert(client_cert),
                                         b64_key(client_key))
        os.makedirs(self.workdir, exist_ok=True)
        path = os.path.join(self.workdir, "admin.conf")
        with open(path, "w") as fh:
            fh.write(kubeconfig)
        LOGGER.debug("wrote dummy admin.conf to %s", path)
        return discovery_hash(ca_cert)
