"""
Builder
=======

Bootstrap a kubernetes cluster on the machines of a provisioner.

The master is bootstrapped first and on its own. Only after it finished
successfully and handed out a valid join credential are the workers
bootstrapped, all of them at the same time. A failing worker degrades
the cluster but does not stop the other workers.
"""
import asyncio
import dataclasses
import enum
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional

from kubestrap import DEFAULT_BOOTSTRAP_TIMEOUT
from kubestrap.cloud.provider import ExitStatus
from kubestrap.cloud.topology import ClusterTopology, Node, Role
from kubestrap.deploy.join import JoinCredential, JoinCredentialBroker
from kubestrap.errors import (BootstrapFailed, BootstrapTimeout,
                              CredentialExtractionFailed, ErrorKind,
                              KubestrapError, ProvisionError, TransferFailed)
from kubestrap.util.logger import Logger
from kubestrap.util.util import retry

LOGGER = Logger(__name__)


class ClusterState(enum.Enum):
    """the states of a bootstrap run"""
    PLANNED = "Planned"
    MASTER_PROVISIONING = "MasterProvisioning"
    MASTER_READY = "MasterReady"
    WORKERS_PROVISIONING = "WorkersProvisioning"
    CLUSTER_READY = "ClusterReady"
    FAILED = "Failed"

    def __str__(self):
        return self.value


TRANSITIONS = {
    ClusterState.PLANNED: {ClusterState.MASTER_PROVISIONING,
                           ClusterState.FAILED},
    ClusterState.MASTER_PROVISIONING: {ClusterState.MASTER_READY,
                                       ClusterState.FAILED},
    # a cluster without workers is ready once the master is
    ClusterState.MASTER_READY: {ClusterState.WORKERS_PROVISIONING,
                                ClusterState.CLUSTER_READY,
                                ClusterState.FAILED},
    ClusterState.WORKERS_PROVISIONING: {ClusterState.CLUSTER_READY,
                                        ClusterState.FAILED},
    ClusterState.CLUSTER_READY: set(),
    ClusterState.FAILED: set(),
}


@dataclass(frozen=True)
class BootstrapArtifact:
    """The bootstrap script and where it is put on each machine."""
    local_path: str
    remote_path: str = "/tmp/kubestrap-bootstrap.sh"


@dataclass(frozen=True)
class BootstrapInvocation:
    """The exact arguments the bootstrap script is run with on one node."""
    target: Node
    role: Role
    master_ip: str
    worker_count: int
    join_credential: Optional[JoinCredential] = None

    def args(self):
        """``role master_ip worker_count [token discovery_hash]``"""
        args = [self.role.value, self.master_ip, str(self.worker_count)]
        if self.join_credential is not None:
            args += [self.join_credential.token,
                     self.join_credential.discovery_hash]
        return args

    @classmethod
    def for_master(cls, topology: ClusterTopology):
        return cls(topology.master, Role.MASTER, topology.master.ip,
                   topology.worker_count)

    @classmethod
    def for_worker(cls, topology: ClusterTopology, node: Node,
                   credential: JoinCredential):
        if credential is None:
            raise ValueError("workers can't be bootstrapped without a "
                             "join credential")
        return cls(node, Role.WORKER, topology.master.ip,
                   topology.worker_count, credential)


def worker_invocations(topology, credential):
    """one invocation per worker, in worker order"""
    return [BootstrapInvocation.for_worker(topology, node, credential)
            for node in topology.workers]


@dataclass
class NodeResult:
    """What happened on a single node."""
    node: Node
    ok: bool
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    attempts: int = 0
    status: Optional[ExitStatus] = None
    dispatched: bool = True

    def as_dict(self):
        return {'hostname': self.node.hostname,
                'ip': self.node.ip,
                'role': self.node.role.value,
                'ok': self.ok,
                'dispatched': self.dispatched,
                'attempts': self.attempts,
                'exit-code': self.status.code if self.status else None,
                'error': str(self.error_kind) if self.error_kind else None,
                'message': self.message or None}


@dataclass
class ClusterOutcome:
    """The structured result of a bootstrap run."""
    state: ClusterState
    results: List[NodeResult] = field(default_factory=list)
    degraded_nodes: List[Node] = field(default_factory=list)
    credential: Optional[JoinCredential] = None
    error: Optional[KubestrapError] = None

    @property
    def degraded(self):
        return bool(self.degraded_nodes)

    @property
    def exit_code(self):
        return 0 if self.state is ClusterState.CLUSTER_READY else 1

    def result_for(self, hostname):
        return next((r for r in self.results
                     if r.node.hostname == hostname), None)

    def as_dict(self):
        return {'state': str(self.state),
                'degraded-nodes': [n.hostname for n in self.degraded_nodes],
                'error': str(self.error) if self.error else None,
                'join-credential': (self.credential.as_dict()
                                    if self.credential else None),
                'nodes': [r.as_dict() for r in self.results]}


class BootstrapCoordinator:  # pylint: disable=too-many-instance-attributes
    """
    Drive the bootstrap of a whole cluster through a provisioner.

    Args:
        provider (Provisioner): the machine backend
        artifact (BootstrapArtifact): the bootstrap script
        broker (JoinCredentialBroker): extracts the join credential
        timeout (float): seconds a single node may take
        transfer_retries (int): extra attempts after a ``TransferFailed``
        retry_delay (float): seconds between those attempts
        join_artifact (str): read the join command from this file instead
            of the master's output
        kubeconfig_source (str): if this file exists after the master
            step, the discovery hash is checked against its CA
    """

    # pylint: disable=too-many-arguments
    def __init__(self, provider, artifact, broker=None,
                 timeout=DEFAULT_BOOTSTRAP_TIMEOUT, transfer_retries=1,
                 retry_delay=2.0, join_artifact=None, kubeconfig_source=None):
        self.provider = provider
        self.artifact = artifact
        self.broker = broker or JoinCredentialBroker()
        self.timeout = timeout
        self.transfer_retries = transfer_retries
        self.retry_delay = retry_delay
        self.join_artifact = join_artifact
        self.kubeconfig_source = kubeconfig_source
        self.state = ClusterState.PLANNED
        self.transitions = [ClusterState.PLANNED]

    def _transition(self, new_state):
        if new_state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"illegal transition {self.state} -> "
                               f"{new_state}")
        LOGGER.debug("state %s -> %s", self.state, new_state)
        self.state = new_state
        self.transitions.append(new_state)

    def run(self, topology: ClusterTopology) -> ClusterOutcome:
        """
        execute the complete cluster bootstrap
        """
        if self.state is not ClusterState.PLANNED:
            raise RuntimeError("a coordinator can only run once")
        return asyncio.run(self._run(topology))

    async def _run(self, topology):
        executor = ThreadPoolExecutor(
            max_workers=max(1, topology.worker_count),
            thread_name_prefix="kubestrap")
        try:
            return await self._bootstrap(topology, executor)
        finally:
            # timed out nodes are left to finish on their own
            executor.shutdown(wait=False)

    def _fail(self, results, error):
        self._transition(ClusterState.FAILED)
        if error is not None:
            LOGGER.error("Cluster bootstrap failed: %s", error)
        return ClusterOutcome(ClusterState.FAILED, results=results,
                              error=error)

    async def _bootstrap(self, topology, executor):
        skipped = [NodeResult(node, False, message="not dispatched",
                              dispatched=False)
                   for node in topology.workers]
        try:
            self.provider.prepare(topology)
        except (KubestrapError, OSError) as exc:
            error = BootstrapFailed(f"preparing the provider failed: {exc}",
                                    step="prepare")
            return self._fail(skipped, error)

        self._transition(ClusterState.MASTER_PROVISIONING)
        LOGGER.info("Bootstrapping master %s (%s) ...",
                    topology.master.hostname, topology.master.ip)

        master_result = await self._dispatch(
            BootstrapInvocation.for_master(topology), executor)
        if not master_result.ok:
            error = BootstrapFailed(master_result.message,
                                    node=topology.master.hostname,
                                    step="master")
            return self._fail([master_result] + skipped, error)

        try:
            credential = self._obtain_credential(master_result)
        except CredentialExtractionFailed as exc:
            exc.node = exc.node or topology.master.hostname
            master_result = dataclasses.replace(
                master_result, ok=False, error_kind=exc.kind,
                message=str(exc))
            return self._fail([master_result] + skipped, exc)

        self._transition(ClusterState.MASTER_READY)
        LOGGER.success("Master %s is ready", topology.master.hostname)

        if not topology.workers:
            self._transition(ClusterState.CLUSTER_READY)
            return ClusterOutcome(ClusterState.CLUSTER_READY,
                                  results=[master_result],
                                  credential=credential)

        self._transition(ClusterState.WORKERS_PROVISIONING)
        LOGGER.info("Waiting for %d worker(s) to join ...",
                    topology.worker_count)
        worker_results = await asyncio.gather(
            *(self._dispatch(inv, executor)
              for inv in worker_invocations(topology, credential)))

        results = [master_result] + list(worker_results)
        degraded = [r.node for r in worker_results if not r.ok]
        if len(degraded) == len(worker_results):
            error = BootstrapFailed(f"all {len(degraded)} workers failed",
                                    step="workers")
            outcome = self._fail(results, error)
            outcome.credential = credential
            return outcome

        self._transition(ClusterState.CLUSTER_READY)
        if degraded:
            LOGGER.warning("Cluster is degraded, failed nodes: %s",
                           ", ".join(n.hostname for n in degraded))
        else:
            LOGGER.success("All %d workers joined the cluster",
                           len(worker_results))
        return ClusterOutcome(ClusterState.CLUSTER_READY, results=results,
                              degraded_nodes=degraded,
                              credential=credential)

    def _obtain_credential(self, master_result):
        if self.join_artifact:
            credential = self.broker.extract_file(self.join_artifact)
        else:
            credential = self.broker.extract(master_result.status.stdout)

        if self.kubeconfig_source and os.path.exists(self.kubeconfig_source):
            self.broker.verify(credential, self.kubeconfig_source)
        else:
            LOGGER.debug("no kubeconfig to verify the discovery hash with")
        return credential

    async def _dispatch(self, invocation, executor):
        """run one invocation in the thread pool and collect its result"""
        loop = asyncio.get_running_loop()
        node = invocation.target
        attempts = []
        future = loop.run_in_executor(executor, self._invoke_with_retries,
                                      invocation, attempts)
        try:
            status = await asyncio.wait_for(future, timeout=self.timeout)
        except asyncio.TimeoutError:
            error = BootstrapTimeout(
                f"no result after {self.timeout} seconds",
                node=node.hostname, step="run_privileged")
            return self._node_failed(node, error, len(attempts))
        except ProvisionError as exc:
            exc.node = exc.node or node.hostname
            return self._node_failed(node, exc, len(attempts),
                                     getattr(exc, "status", None))
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.debug("unexpected error on %s", node.hostname,
                         exc_info=True)
            error = BootstrapFailed(f"unexpected provisioner error: {exc}",
                                    node=node.hostname)
            return self._node_failed(node, error, len(attempts))

        LOGGER.success("%s %s (%s) bootstrapped", node.role.value.title(),
                       node.hostname, node.ip)
        return NodeResult(node, True, attempts=len(attempts), status=status)

    @staticmethod
    def _node_failed(node, error, attempts, status=None):
        LOGGER.error("%s failed: %s", node.hostname, error)
        return NodeResult(node, False, error_kind=error.kind,
                          message=str(error), attempts=attempts,
                          status=status)

    def _invoke_with_retries(self, invocation, attempts):
        invoke = retry(TransferFailed,
                       tries=self.transfer_retries + 1,
                       delay=self.retry_delay,
                       backoff=1,
                       logger=LOGGER.warning)(self._invoke)
        return invoke(invocation, attempts)

    def _invoke(self, invocation, attempts):
        """ensure the machine, upload the script and run it"""
        attempts.append(invocation.target.hostname)
        node = invocation.target
        handle = self.provider.ensure_machine(node)
        self.provider.upload(handle, self.artifact.local_path,
                             self.artifact.remote_path)
        status = self.provider.run_privileged(handle,
                                              self.artifact.remote_path,
                                              invocation.args())
        if not status.ok:
            error = BootstrapFailed(
                f"bootstrap exited with code {status.code}",
                node=node.hostname, step="run_privileged")
            error.status = status
            raise error
        return status
