"""
Configuration
=============

kubestrap reads an optional YAML file with hyphenated keys, the same keys
as :data:`DEFAULT_CONFIG`. Values given on the command line win over the
file, the file wins over the defaults.

.. code:: yaml

    cluster-name: lab
    workers: 2
    master-ip: 192.168.56.10
    network-prefix: 192.168.56.0/24
    provider: vagrant
    timeout: 1200
    vagrant:
      box: ubuntu/jammy64
      memory: 4096
"""
import copy
import os

import yaml

from kubestrap import (DEFAULT_BOOTSTRAP_TIMEOUT, DEFAULT_CLUSTER_NAME,
                       DEFAULT_MASTER_IP, DEFAULT_WORKER_COUNT)
from kubestrap.provision import DEFAULT_BOOTSTRAP_SCRIPT
from kubestrap.provision.vagrantfile import (DEFAULT_BOX, DEFAULT_CPUS,
                                             DEFAULT_MEMORY)
from kubestrap.util.net import is_ip

CONFIG_ENV = "KUBESTRAP_CONFIG"

PROVIDERS = ("vagrant", "dummy")

DEFAULT_CONFIG = {
    'cluster-name': DEFAULT_CLUSTER_NAME,
    'workers': DEFAULT_WORKER_COUNT,
    'master-ip': DEFAULT_MASTER_IP,
    'network-prefix': None,
    'provider': "vagrant",
    'bootstrap-script': DEFAULT_BOOTSTRAP_SCRIPT,
    'remote-path': "/tmp/kubestrap-bootstrap.sh",
    'timeout': DEFAULT_BOOTSTRAP_TIMEOUT,
    'transfer-retries': 1,
    'retry-delay': 2.0,
    'join-artifact': None,
    'kubeconfig-source': None,
    'kubeconfig-destinations': None,
    'workdir': ".",
    'vagrant': {
        'box': DEFAULT_BOX,
        'memory': DEFAULT_MEMORY,
        'cpus': DEFAULT_CPUS,
    },
}

_OPTIONAL_STR = (str, type(None))
_NUMBER = (int, float)

CONFIG_TYPES = {
    'cluster-name': str,
    'workers': int,
    'master-ip': str,
    'network-prefix': _OPTIONAL_STR,
    'provider': str,
    'bootstrap-script': str,
    'remote-path': str,
    'timeout': _NUMBER,
    'transfer-retries': int,
    'retry-delay': _NUMBER,
    'join-artifact': _OPTIONAL_STR,
    'kubeconfig-source': _OPTIONAL_STR,
    'kubeconfig-destinations': (list, type(None)),
    'workdir': str,
    'vagrant': dict,
}

VAGRANT_TYPES = {'box': str, 'memory': int, 'cpus': int}


def _check_type(key, value, types):
    # bool is an int, but never a valid count or duration
    if isinstance(value, bool) or not isinstance(value, types):
        raise ValueError(f"config option '{key}' has an invalid value "
                         f"{value!r}")


def validate(config):
    """Check a complete configuration.

    Raises:
        ValueError on unknown keys, wrong types or values out of range.
    """
    unknown = set(config) - set(DEFAULT_CONFIG)
    if unknown:
        raise ValueError("unknown config option(s): %s" %
                         ", ".join(sorted(unknown)))

    for key, types in CONFIG_TYPES.items():
        _check_type(key, config[key], types)

    for key, types in VAGRANT_TYPES.items():
        _check_type("vagrant.%s" % key, config['vagrant'][key], types)

    if config['provider'] not in PROVIDERS:
        raise ValueError("provider must be one of %s, got '%s'" % (
            " | ".join(PROVIDERS), config['provider']))
    if not is_ip(config['master-ip']):
        raise ValueError("master-ip '%s' is not an IP address" %
                         config['master-ip'])
    if config['workers'] < 0:
        raise ValueError("workers must not be negative")
    if config['timeout'] <= 0:
        raise ValueError("timeout must be positive")
    if config['transfer-retries'] < 0:
        raise ValueError("transfer-retries must not be negative")
    if config['retry-delay'] < 0:
        raise ValueError("retry-delay must not be negative")
    if config['kubeconfig-destinations'] is not None and not all(
            isinstance(d, str) for d in config['kubeconfig-destinations']):
        raise ValueError("kubeconfig-destinations must be a list of paths")
    return config


def read_config(path):
    """read a YAML configuration file into a dict"""
    with open(path, 'r') as stream:
        try:
            data = yaml.safe_load(stream)
        except yaml.YAMLError as exc:
            raise ValueError(f"{path} is not valid YAML: {exc}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping")
    return data


def load_config(path=None, env=None, **overrides):
    """Build the effective configuration.

    Args:
        path (str): a YAML file, defaults to ``$KUBESTRAP_CONFIG``
        env (dict): the environment, ``os.environ`` if not given
        overrides: options from the command line. Underscores in the
            names are read as dashes, ``None`` values are ignored.

    Returns:
        The validated configuration as dict.

    Raises:
        OSError if the file can't be read, ValueError if the
        configuration is invalid.
    """
    env = os.environ if env is None else env
    path = path or env.get(CONFIG_ENV)

    config = copy.deepcopy(DEFAULT_CONFIG)
    file_config = read_config(path) if path else {}

    vagrant = file_config.pop('vagrant', None) or {}
    if not isinstance(vagrant, dict):
        raise ValueError("config option 'vagrant' must be a mapping")
    unknown = set(vagrant) - set(VAGRANT_TYPES)
    if unknown:
        raise ValueError("unknown vagrant option(s): %s" %
                         ", ".join(sorted(unknown)))
    config['vagrant'].update(vagrant)
    config.update(file_config)

    for key, value in overrides.items():
        if value is not None:
            config[key.replace("_", "-")] = value

    return validate(config)


def kubeconfig_source(config):
    """the admin kubeconfig written by the master, ``admin.conf`` in the
    work directory unless configured otherwise"""
    return config['kubeconfig-source'] or os.path.join(config['workdir'],
                                                       "admin.conf")
