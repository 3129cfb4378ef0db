"""
check on a bootstrapped cluster via the API server
"""
import logging

import urllib3

from kubernetes import client as k8sclient
from kubernetes.client.rest import ApiException
from kubernetes.config import kube_config

from kubestrap.util.logger import Logger

LOGGER = Logger(__name__)


class K8S:
    """Read only access to the cluster described by a kubeconfig.

    Args:
        config (str): File path for the kubernetes configuration file
    """

    def __init__(self, config):
        self.config = config
        self.client = kube_config.new_client_from_config(config_file=config)
        self.api = k8sclient.CoreV1Api(api_client=self.client)

    @property
    def host(self):
        """the API server URL"""
        return self.client.configuration.host

    @property
    def is_ready(self):
        """Check if the API server is already available.

        Returns:
            True if it's reachable.
        """
        logging.getLogger("urllib3").setLevel(logging.ERROR)
        try:
            k8sclient.CoreApi(api_client=self.client).get_api_versions()
            return True
        except (urllib3.exceptions.MaxRetryError, ApiException) as exc:
            LOGGER.debug("API server not ready: %s", exc)
            return False
        finally:
            logging.getLogger("urllib3").setLevel(logging.WARNING)

    def node_status(self, nodename):
        """Returns the status of a Node.

        Args:
            nodename (str): The name of the node to check.

        Returns:
            ``Ready`` or ``NotReady``, None if the node is unknown or an
            error was encountered.
        """
        try:
            resp = self.api.read_node_status(nodename)
        except ApiException as exc:
            LOGGER.debug("API exception: %s", exc)
            return None

        conditions = resp.status.conditions or []
        ready = [x for x in conditions if x.type == 'Ready']
        if not ready:
            return None
        return "Ready" if ready[0].status == "True" else "NotReady"

    def nodes_status(self, nodenames):
        """a dict of node name to :meth:`node_status`"""
        return {name: self.node_status(name) for name in nodenames}
