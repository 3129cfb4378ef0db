# pylint: disable=missing-docstring
from importlib import metadata

try:
    __version__ = metadata.version('kubestrap')
except metadata.PackageNotFoundError:
    __version__ = '0.3.0'

# Defining some constants
MASTER_PREFIX = "master"
WORKER_PREFIX = "worker"
DEFAULT_CLUSTER_NAME = "k8s"
DEFAULT_MASTER_IP = "192.168.56.10"
DEFAULT_WORKER_COUNT = 3
DEFAULT_BOOTSTRAP_TIMEOUT = 900
API_SERVER_PORT = 6443
