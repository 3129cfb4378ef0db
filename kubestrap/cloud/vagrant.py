"""
A provisioner backend driving the ``vagrant`` command line tool.

All machines live in a single vagrant project in ``workdir``, which also
becomes the shared ``/vagrant`` folder of the machines. The default
bootstrap script drops ``admin.conf`` there.
"""
import os
import shlex
import shutil
import subprocess as sp

from kubestrap.cloud.provider import ExitStatus, MachineHandle, Provisioner
from kubestrap.deploy.kubeconfig import backup_path
from kubestrap.errors import BootstrapFailed, TransferFailed
from kubestrap.provision.vagrantfile import (DEFAULT_BOX, DEFAULT_CPUS,
                                             DEFAULT_MEMORY, Vagrantfile,
                                             is_generated)
from kubestrap.util.logger import Logger

LOGGER = Logger(__name__)

VAGRANT = "vagrant"


def parse_machine_state(output, name):
    """Find the state of machine ``name`` in the output of
    ``vagrant status --machine-readable``.

    Lines look like ``1700000000,k8s-master,state,running``.

    Returns:
        The state as str, or None if the machine is not listed.
    """
    for line in output.splitlines():
        fields = line.split(",")
        if len(fields) >= 4 and fields[1] == name and fields[2] == "state":
            return fields[3]
    return None


class VagrantProvider(Provisioner):
    """
    Args:
        workdir (str): the vagrant project directory
        box (str): the box machines are created from
        memory (int): MiB of memory per machine
        cpus (int): CPUs per machine
        timeout (float): seconds any single vagrant call may take
    """

    name = "vagrant"

    # pylint: disable=too-many-arguments
    def __init__(self, workdir, box=DEFAULT_BOX, memory=DEFAULT_MEMORY,
                 cpus=DEFAULT_CPUS, timeout=None):
        self.workdir = os.path.abspath(workdir)
        self.box = box
        self.memory = memory
        self.cpus = cpus
        self.timeout = timeout

    def _vagrant(self, *args):
        cmd = [VAGRANT] + list(args)
        LOGGER.debug("running %s", " ".join(cmd))
        proc = sp.run(cmd,
                      cwd=self.workdir,
                      encoding="utf-8",
                      errors="replace",
                      stdout=sp.PIPE,
                      stderr=sp.PIPE,
                      timeout=self.timeout)
        LOGGER.debug("%s exited with %s", cmd[1], proc.returncode)
        return proc

    def prepare(self, topology):
        os.makedirs(self.workdir, exist_ok=True)
        path = os.path.join(self.workdir, "Vagrantfile")
        if os.path.exists(path) and not is_generated(path):
            backup = backup_path(path)
            shutil.copy2(path, backup)
            LOGGER.warning("Backed up existing %s to %s", path, backup)
        Vagrantfile(topology, self.box, self.memory, self.cpus).write(path)
        LOGGER.info("Wrote %s for %d machines", path, len(topology.nodes))

    def machine_state(self, name):
        """the vagrant state of a machine, e.g. ``running``"""
        proc = self._vagrant("status", name, "--machine-readable")
        if proc.returncode:
            return None
        return parse_machine_state(proc.stdout, name)

    def ensure_machine(self, node):
        name = node.hostname
        try:
            state = self.machine_state(name)
            if state == "running":
                LOGGER.debug("%s is already running", name)
            else:
                LOGGER.info("Bringing up %s (%s) ...", name, state or "new")
                proc = self._vagrant("up", name, "--no-provision")
                if proc.returncode:
                    raise BootstrapFailed(
                        "vagrant up failed: %s" % proc.stderr.strip(),
                        node=name, step="ensure_machine")
        except (OSError, sp.TimeoutExpired) as exc:
            raise BootstrapFailed(f"can't run vagrant: {exc}", node=name,
                                  step="ensure_machine")
        return MachineHandle(name, node, {"workdir": self.workdir})

    def upload(self, handle, local_path, remote_path):
        try:
            proc = self._vagrant("upload", os.path.abspath(local_path),
                                 remote_path, handle.name)
        except (OSError, sp.TimeoutExpired) as exc:
            raise TransferFailed(str(exc), node=handle.name, step="upload")
        if proc.returncode:
            raise TransferFailed(
                "vagrant upload exited with %d: %s" % (
                    proc.returncode, proc.stderr.strip()),
                node=handle.name, step="upload")

    def run_privileged(self, handle, command, args):
        remote = " ".join(shlex.quote(part) for part in
                          ["sudo", "bash", command] + [str(a) for a in args])
        try:
            proc = self._vagrant("ssh", handle.name, "-c", remote)
        except (OSError, sp.TimeoutExpired) as exc:
            raise BootstrapFailed(str(exc), node=handle.name,
                                  step="run_privileged")
        return ExitStatus(proc.returncode, proc.stdout, proc.stderr)
