"""
Errors
======

Every failure the orchestrator can report carries an :class:`ErrorKind`,
the name of the node it happened on and the step that failed.
Planning errors are raised to the caller, provisioning errors end up in
the per node results of a run.
"""
import enum


class ErrorKind(enum.Enum):
    """classification of orchestration failures"""
    TOPOLOGY_OVERFLOW = "TopologyOverflow"
    INVALID_TOPOLOGY = "InvalidTopology"
    TRANSFER_FAILED = "TransferFailed"
    BOOTSTRAP_FAILED = "BootstrapFailed"
    BOOTSTRAP_TIMEOUT = "BootstrapTimeout"
    CREDENTIAL_EXTRACTION_FAILED = "CredentialExtractionFailed"
    SOURCE_MISSING = "SourceMissing"
    BACKUP_FAILED = "BackupFailed"
    DESTINATION_WRITE_FAILED = "DestinationWriteFailed"

    def __str__(self):
        return self.value


class KubestrapError(Exception):
    """Base class of all kubestrap errors.

    Args:
        message (str): what went wrong
        node (str): the hostname of the affected node, if any
        step (str): the operation that failed, e.g. ``upload``
    """
    kind = None

    def __init__(self, message, node=None, step=None):
        super().__init__(message)
        self.message = message
        self.node = node
        self.step = step

    def __str__(self):
        context = []
        if self.node:
            context.append(f"node={self.node}")
        if self.step:
            context.append(f"step={self.step}")
        if context:
            return f"{self.kind}: {self.message} ({', '.join(context)})"
        return f"{self.kind}: {self.message}"


class TopologyError(KubestrapError, ValueError):
    """raised while planning, before any machine was touched"""


class TopologyOverflow(TopologyError):
    """the requested nodes don't fit into the network prefix"""
    kind = ErrorKind.TOPOLOGY_OVERFLOW


class InvalidTopology(TopologyError):
    """the planning input itself is malformed"""
    kind = ErrorKind.INVALID_TOPOLOGY


class ProvisionError(KubestrapError):
    """a provisioner call failed for a single node"""


class TransferFailed(ProvisionError):
    """uploading the bootstrap artifact failed, this is retried"""
    kind = ErrorKind.TRANSFER_FAILED


class BootstrapFailed(ProvisionError):
    """the bootstrap procedure exited non-zero, this is never retried"""
    kind = ErrorKind.BOOTSTRAP_FAILED


class BootstrapTimeout(BootstrapFailed):
    """the bootstrap procedure did not return in time"""
    kind = ErrorKind.BOOTSTRAP_TIMEOUT


class CredentialExtractionFailed(KubestrapError):
    """no usable join credential could be obtained from the master"""
    kind = ErrorKind.CREDENTIAL_EXTRACTION_FAILED


class SourceMissing(KubestrapError):
    """the admin kubeconfig to distribute can't be read"""
    kind = ErrorKind.SOURCE_MISSING
