"""
cli.py
======

misc functions used by the commands of ``kubestrap.kubestrap.Kubestrap``.

Don't use directly
"""
import yaml

from kubestrap.cloud.builder import BootstrapArtifact, BootstrapCoordinator
from kubestrap.cloud.provider import DummyProvider
from kubestrap.cloud.vagrant import VagrantProvider
from kubestrap.deploy.kubeconfig import KubeconfigDistributor
from kubestrap.util.config import kubeconfig_source
from kubestrap.util.hue import bold
from kubestrap.util.logger import Logger

LOGGER = Logger(__name__)


def print_report(data):
    """print a structured report as YAML"""
    print(yaml.safe_dump(data, default_flow_style=False, sort_keys=False),
          end="")


def get_provider(config):
    """create the provisioner backend named in the configuration"""
    if config['provider'] == "dummy":
        return DummyProvider(workdir=config['workdir'])
    vagrant = config['vagrant']
    return VagrantProvider(config['workdir'],
                           box=vagrant['box'],
                           memory=vagrant['memory'],
                           cpus=vagrant['cpus'],
                           timeout=config['timeout'])


def get_coordinator(config, provider):
    """create a coordinator for a configuration and backend"""
    artifact = BootstrapArtifact(config['bootstrap-script'],
                                 config['remote-path'])
    return BootstrapCoordinator(provider,
                                artifact,
                                timeout=config['timeout'],
                                transfer_retries=config['transfer-retries'],
                                retry_delay=config['retry-delay'],
                                join_artifact=config['join-artifact'],
                                kubeconfig_source=kubeconfig_source(config))


def print_outcome(outcome):
    """print the report of a bootstrap run and a one line summary"""
    print_report({'cluster': outcome.as_dict()})
    if outcome.exit_code:
        LOGGER.error("Cluster bootstrap failed: %s", outcome.error)
    elif outcome.degraded:
        LOGGER.warning("Cluster is ready, but degraded: %s",
                       ", ".join(n.hostname for n in outcome.degraded_nodes))
    else:
        LOGGER.success("Cluster is ready")


def copy_kubeconfig(artifact):
    """Distribute the admin kubeconfig and tell the user how to use it.

    Args:
        artifact (KubeconfigArtifact): the source and its destinations

    Returns:
        The list of :class:`kubestrap.deploy.kubeconfig.DistributionResult`.

    Raises:
        SourceMissing if the source can't be read.
    """
    distributor = KubeconfigDistributor.for_artifact(artifact)
    results = distributor.distribute(artifact.source_path,
                                     artifact.destinations)
    print_report({'kubeconfig': [r.as_dict() for r in results]})

    written = [r for r in results if r.ok]
    if written:
        LOGGER.success("You can now use kubectl:")
        LOGGER.success(bold("kubectl --kubeconfig=%s get nodes"),
                       written[0].destination)
    for result in results:
        if result.backup_path:
            LOGGER.info("To restore your previous config: cp %s %s",
                        result.backup_path, result.destination)
    return results
