"""
Kubeconfig distribution
=======================

Copy the cluster's admin kubeconfig to where kubectl finds it. An
existing file at a destination is always backed up to
``<name>.backup.<timestamp>`` before it is overwritten, and every
destination is handled on its own: one failing destination never stops
the others.
"""
import os
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

import yaml

from kubestrap.errors import ErrorKind, SourceMissing
from kubestrap.util.logger import Logger

LOGGER = Logger(__name__)

BACKUP_MARKER = "backup"


def timestamp_suffix():
    """the default backup suffix, e.g. ``20240131_235959``"""
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def backup_path(path, suffix=None):
    """
    A free path for a backup of ``path``: ``<name>.backup.<suffix>``, with
    a counter appended if that one is taken already.
    """
    path = Path(path)
    base = "%s.%s.%s" % (path.name, BACKUP_MARKER,
                         suffix or timestamp_suffix())
    candidate = path.with_name(base)
    counter = 1
    while candidate.exists():
        candidate = path.with_name("%s.%d" % (base, counter))
        counter += 1
    return candidate


def default_destinations(cwd=None, home=None):
    """
    The usual places for a kubeconfig: ``kubeconfig`` in the working
    directory and the per-user ``~/.kube/config``.
    """
    cwd = Path(cwd) if cwd else Path.cwd()
    home = Path(home) if home else Path.home()
    return [cwd / "kubeconfig", home / ".kube" / "config"]


def load_kubeconfig(path):
    """Read and parse a kubeconfig file.

    Raises:
        OSError if the file can't be read, ValueError if it isn't YAML
        describing a mapping.
    """
    with open(path, "r") as stream:
        try:
            config = yaml.safe_load(stream)
        except yaml.YAMLError as exc:
            raise ValueError(f"{path} is not valid YAML: {exc}")
    if not isinstance(config, dict):
        raise ValueError(f"{path} does not contain a kubeconfig")
    return config


def _current_cluster(config):
    clusters = config.get("clusters") or []
    if not clusters:
        return {}
    cluster_name = None
    current = config.get("current-context")
    for ctx in config.get("contexts") or []:
        if ctx.get("name") == current:
            cluster_name = (ctx.get("context") or {}).get("cluster")
    for item in clusters:
        if item.get("name") == cluster_name:
            return item.get("cluster") or {}
    return clusters[0].get("cluster") or {}


def cluster_ca_data(config):
    """the base64 CA of the current context's cluster, or None"""
    return _current_cluster(config).get("certificate-authority-data")


def describe(data):
    """Summarize kubeconfig content for log output.

    Args:
        data (bytes or str): the kubeconfig content

    Returns:
        A dict with ``server`` and ``context``, or None if ``data`` does
        not look like a kubeconfig.
    """
    try:
        config = yaml.safe_load(data)
    except yaml.YAMLError:
        return None
    if not isinstance(config, dict) or config.get("kind") != "Config":
        return None
    return {"server": _current_cluster(config).get("server"),
            "context": config.get("current-context")}


@dataclass
class KubeconfigArtifact:
    """The admin kubeconfig and where it should be copied to."""
    source_path: str
    destinations: List[str] = field(default_factory=list)
    backup_suffix: Callable[[], str] = timestamp_suffix


@dataclass
class DistributionResult:
    """Outcome of copying the kubeconfig to a single destination."""
    destination: str
    ok: bool
    backup_path: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    message: str = ""

    def as_dict(self):
        return {'destination': self.destination,
                'ok': self.ok,
                'backup': self.backup_path,
                'error': str(self.error_kind) if self.error_kind else None,
                'message': self.message or None}


class KubeconfigDistributor:
    """Copies a kubeconfig with backup-before-overwrite.

    Args:
        backup_suffix (callable): returns the suffix appended to
            ``<name>.backup.``, a timestamp by default
        mode (int): file mode of written destinations
    """

    def __init__(self, backup_suffix=timestamp_suffix, mode=0o600):
        self.backup_suffix = backup_suffix
        self.mode = mode

    @classmethod
    def for_artifact(cls, artifact):
        return cls(backup_suffix=artifact.backup_suffix)

    def backup_path(self, destination):
        """Find a free backup path for destination."""
        return backup_path(destination, self.backup_suffix())

    def distribute(self, source_path, destinations) -> List[DistributionResult]:
        """Copy ``source_path`` to every destination.

        Args:
            source_path (str): the admin kubeconfig
            destinations (list): paths to copy it to

        Returns:
            One :class:`DistributionResult` per destination, in order.

        Raises:
            SourceMissing if the source can't be read. Nothing is written
            in that case.
        """
        try:
            with open(source_path, "rb") as fh:
                data = fh.read()
        except OSError as exc:
            raise SourceMissing(f"can't read {source_path}: {exc}",
                                step="distribute")

        summary = describe(data)
        if summary is None:
            LOGGER.warning("%s does not look like a kubeconfig, copying "
                           "it anyway", source_path)
        else:
            LOGGER.debug("kubeconfig for %s (context %s)",
                         summary["server"], summary["context"])

        return [self._distribute_one(data, Path(dest))
                for dest in destinations]

    def _distribute_one(self, data, destination):
        backup = None
        if destination.exists():
            try:
                backup = self.backup_path(destination)
                shutil.copy2(destination, backup)
            except OSError as exc:
                LOGGER.error("Backing up %s failed: %s", destination, exc)
                return DistributionResult(str(destination), False,
                                          error_kind=ErrorKind.BACKUP_FAILED,
                                          message=str(exc))
            LOGGER.info("Backed up existing %s to %s", destination, backup)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(destination,
                         os.O_WRONLY | os.O_CREAT | os.O_TRUNC, self.mode)
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.chmod(destination, self.mode)
        except OSError as exc:
            LOGGER.error("Writing %s failed: %s", destination, exc)
            return DistributionResult(
                str(destination), False,
                backup_path=str(backup) if backup else None,
                error_kind=ErrorKind.DESTINATION_WRITE_FAILED,
                message=str(exc))

        LOGGER.success("Kubeconfig written to %s", destination)
        return DistributionResult(str(destination), True,
                                  backup_path=str(backup) if backup else None)
