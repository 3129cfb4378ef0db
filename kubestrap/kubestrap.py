"""
kubestrap
=========

The main entry point for the kubernetes cluster bootstrap.
Don't use it directly, instead install the package with setup.py.
It automatically creates an executable in your path.

"""
import argparse
import os
import sys

from kubernetes.config.config_exception import ConfigException
from mach import mach1

from . import __version__
from .cli import copy_kubeconfig, get_coordinator, get_provider, \
    print_outcome, print_report
from .cloud.builder import ClusterState
from .cloud.topology import plan as plan_topology
from .deploy.k8s import K8S
from .deploy.kubeconfig import KubeconfigArtifact, default_destinations
from .errors import SourceMissing, TopologyError
from .util.config import kubeconfig_source, load_config
from .util.logger import Logger

LOGGER = Logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2


def add_dashed_aliases(parser):
    """let every ``--some_option`` created by mach also be ``--some-option``"""
    # pylint: disable=protected-access
    for group_action in parser._subparsers._group_actions:
        if not isinstance(group_action, argparse._SubParsersAction):
            continue
        for subparser in group_action.choices.values():
            for action in subparser._actions:
                for opt in list(action.option_strings):
                    if opt.startswith("--") and "_" in opt:
                        dashed = opt.replace("_", "-")
                        action.option_strings.append(dashed)
                        subparser._option_string_actions[dashed] = action


def _configure(config, **overrides):
    try:
        return load_config(config, **overrides)
    except (OSError, ValueError) as err:
        LOGGER.error(f"Error: {err}")
        sys.exit(EXIT_INVALID)


def _plan(config):
    try:
        return plan_topology(config['master-ip'],
                             config['workers'],
                             config['network-prefix'],
                             config['cluster-name'])
    except TopologyError as err:
        LOGGER.error(f"Error: {err}")
        sys.exit(EXIT_INVALID)


@mach1()
class Kubestrap:  # pylint: disable=no-self-use,too-many-arguments
    """
    The main entry point for the program. This class does the CLI parsing
    and decides which action should be taken
    """
    def __init__(self):
        self.parser.add_argument(  # pylint: disable=no-member
            "--version", action="store_true",
            help="show version and exit",
            default=argparse.SUPPRESS)

        verbosity_help = "".join([
            "set the verbosity level (",
            "0 = quiet, ",
            "1 = error, ",
            "2 = warning, ",
            "3 = info, ",
            "4 = debug)"])
        self.parser.add_argument("--verbosity",  # pylint: disable=no-member
                                 "-v",
                                 help=verbosity_help,
                                 choices=['0', '1', '2', '3', '4', 'quiet',
                                          'error', 'warning', 'info', 'debug'],
                                 type=str,
                                 default=3)
        add_dashed_aliases(self.parser)  # pylint: disable=no-member

    def _get_version(self, *_):
        print("%s version: %s" % (self.__class__.__name__, __version__))
        sys.exit(EXIT_OK)

    def _get_verbosity(self, level):  # pylint: disable=no-self-use
        Logger.set_global_level(level)

    def apply(self, config: str = None, workers: int = None,
              master_ip: str = None, network_prefix: str = None,
              provider: str = None, timeout: float = None,
              export_join: str = None):
        """
        Bootstrap a kubernetes cluster

        config - YAML configuration file, defaults to $KUBESTRAP_CONFIG
        workers - the number of workers
        master_ip - the address of the master, workers follow it
        network_prefix - the network all nodes must fit in (CIDR)
        provider - the machine backend [vagrant | dummy]
        timeout - seconds a single node may take to bootstrap
        export_join - write the join command to this file (mode 0600)
        ---
        The master is bootstrapped first, then all workers at once. When
        the cluster is ready the admin kubeconfig is copied to the
        configured destinations. Exits 0 if the cluster is ready (even if
        some workers failed), 1 if it failed and 2 on invalid input.
        """
        cfg = _configure(config, workers=workers, master_ip=master_ip,
                         network_prefix=network_prefix, provider=provider,
                         timeout=timeout)
        topology = _plan(cfg)
        LOGGER.info("Bootstrapping cluster %s with %d worker(s) using %s",
                    topology.cluster_name, topology.worker_count,
                    cfg['provider'])

        coordinator = get_coordinator(cfg, get_provider(cfg))
        outcome = coordinator.run(topology)
        print_outcome(outcome)

        if export_join and outcome.credential:
            try:
                outcome.credential.export(export_join)
                LOGGER.success("Join command written to %s", export_join)
            except (OSError, ValueError) as err:
                LOGGER.error(f"Error: can't export join command: {err}")

        if outcome.state is ClusterState.CLUSTER_READY:
            destinations = (cfg['kubeconfig-destinations'] or
                            default_destinations())
            try:
                copy_kubeconfig(KubeconfigArtifact(kubeconfig_source(cfg),
                                                   destinations))
            except SourceMissing as err:
                LOGGER.warning(f"Kubeconfig was not copied: {err}")

        sys.exit(outcome.exit_code)

    def plan(self, config: str = None, workers: int = None,
             master_ip: str = None, network_prefix: str = None):
        """
        Show the planned nodes of a cluster

        config - YAML configuration file, defaults to $KUBESTRAP_CONFIG
        workers - the number of workers
        master_ip - the address of the master, workers follow it
        network_prefix - the network all nodes must fit in (CIDR)
        """
        cfg = _configure(config, workers=workers, master_ip=master_ip,
                         network_prefix=network_prefix)
        print_report({'topology': _plan(cfg).as_dict()})
        sys.exit(EXIT_OK)

    def kubeconfig(self, source: str = None, destinations: str = None,
                   config: str = None):
        """
        Copy the admin kubeconfig to where kubectl finds it

        source - the kubeconfig written by the master
        destinations - comma separated list of paths
        config - YAML configuration file, defaults to $KUBESTRAP_CONFIG
        ---
        Existing files are backed up to <name>.backup.<timestamp> first.
        """
        cfg = _configure(config)
        source = source or kubeconfig_source(cfg)
        if destinations:
            targets = [d.strip() for d in destinations.split(",")
                       if d.strip()]
        else:
            targets = cfg['kubeconfig-destinations'] or default_destinations()

        try:
            results = copy_kubeconfig(KubeconfigArtifact(source, targets))
        except SourceMissing as err:
            LOGGER.error(f"Error: {err}")
            LOGGER.error("Make sure the master finished its bootstrap.")
            sys.exit(EXIT_FAILED)

        sys.exit(EXIT_OK if all(r.ok for r in results) else EXIT_FAILED)

    def status(self, kubeconfig: str = None, config: str = None):
        """
        Check that the planned nodes joined the cluster

        kubeconfig - the kubeconfig to use, defaults to $KUBECONFIG
        config - YAML configuration file, defaults to $KUBESTRAP_CONFIG
        """
        cfg = _configure(config)
        topology = _plan(cfg)
        kubeconfig = (kubeconfig or os.getenv("KUBECONFIG") or
                      kubeconfig_source(cfg))

        try:
            k8s = K8S(kubeconfig)
        except (OSError, ConfigException) as err:
            LOGGER.error(f"Error: can't load {kubeconfig}: {err}")
            sys.exit(EXIT_FAILED)

        if not k8s.is_ready:
            LOGGER.error("API server %s is not reachable", k8s.host)
            sys.exit(EXIT_FAILED)

        nodes = k8s.nodes_status([n.hostname for n in topology.nodes])
        print_report({'nodes': nodes})
        missing = [name for name, state in nodes.items() if state != "Ready"]
        if missing:
            LOGGER.warning("Not ready: %s", ", ".join(missing))
            sys.exit(EXIT_FAILED)
        LOGGER.success("All %d nodes are ready", len(nodes))
        sys.exit(EXIT_OK)


def main():
    """
    run and execute kubestrap
    """
    k = Kubestrap()

    # pylint: disable=no-member
    k.parser.description = 'Bootstrap a kubeadm cluster of one master '\
                           'and any number of workers.'

    # pylint misses the fact that Kubestrap is decorated with mach.
    # the mach decorator analyzes the methods in the class and dynamically
    # creates the CLI parser. It also adds the method run to the class.
    k.run()  # pylint: disable=no-member
