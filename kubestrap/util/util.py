"""
General purpose utilities
"""
import copy
import re
import time

from functools import lru_cache
from functools import wraps

import yaml


KUBECONFIG_EMB = {'apiVersion': 'v1',
                  'clusters': [{
                      'cluster': {
                          'server': '%%%%MASTERURI%%%%',
                          'certificate-authority-data': '%%%%CA%%%%'
                      },
                      'name': 'kubernetes'
                  }],
                  'contexts': [{
                      'context': {
                          'cluster': 'kubernetes',
                          'user': '%%%USERNAME%%%'
                      },
                      'name': '%%%USERNAME%%%@kubernetes'
                  }],
                  'current-context': '%%%USERNAME%%%@kubernetes',
                  'kind': 'Config',
                  'users': [{
                      'name': '%%%USERNAME%%%',
                      'user': {
                          'client-certificate-data': '%%%%CLIENT_CERT%%%%',
                          'client-key-data': '%%%%CLIENT_KEY%%%%'
                      }
                  }]
                  }


def get_kubeconfig_yaml(master_uri, ca_cert, username, client_cert,
                        client_key):
    """
    format a kube configuration file
    """
    config = copy.deepcopy(KUBECONFIG_EMB)
    config['clusters'][0]['cluster']['server'] = master_uri
    config['clusters'][0]['cluster']['certificate-authority-data'] = ca_cert
    config['contexts'][0]['context']['user'] = username
    config['contexts'][0]['name'] = "%s@kubernetes" % username
    config['current-context'] = "%s@kubernetes" % username
    config['users'][0]['name'] = username
    config['users'][0]['user']['client-certificate-data'] = client_cert
    config['users'][0]['user']['client-key-data'] = client_key

    return yaml.dump(config, default_flow_style=False)


def name_validation(name):
    """
    Validates a name that will be used as part of a host name.
    Each name should conform to the following convention:
    not too long (maximum 244 characters)
    only ASCII-letters, numbers and dashes

    Args:
        name (str): The name to be checked

    Returns:
        Name if valid

    Raises:
        ValueError if the name is invalid.
    """
    if not isinstance(name, str) or not name:
        raise ValueError("cluster-name must be a non empty string")
    if len(name) > 244:
        raise ValueError("cluster-name is too long")
    allowed = re.compile(r"^[a-zA-Z\d-]+$")
    if not allowed.match(name):
        raise ValueError(f"cluster-name '{name}' is using illegal characters")
    return name


@lru_cache(maxsize=16)
def host_names(role, num, cluster_name):
    """
    format host names, e.g. ``k8s-worker-1`` .. ``k8s-worker-num``
    """
    name_validation(cluster_name)
    return ["%s-%s-%s" % (cluster_name, role, i) for i in
            range(1, num + 1)]


def retry(exceptions, tries=4, delay=3, backoff=2, logger=None):
    """
    Retry calling the decorated function using an exponential backoff.

    Args:
        exceptions: The exception to check. may be a tuple of exceptions to check.
        tries: Number of times to try (not retry) before giving up.
        delay: Initial delay between retries in seconds.
        backoff: Backoff multiplier (e.g. value of 2 will double the delay each retry).
        logger: Logging function to use. If None, stay silent.
    """
    def deco_retry(f):  # pylint: disable=invalid-name

        @wraps(f)
        def f_retry(*args, **kwargs):
            mtries, mdelay = tries, delay
            while mtries > 1:
                try:
                    return f(*args, **kwargs)
                except exceptions as e:  # pylint: disable=invalid-name
                    msg = '{}, Retrying in {} seconds...'.format(e,
                                                                 int(mdelay))
                    if logger:
                        logger(msg)
                    time.sleep(mdelay)
                    mtries -= 1
                    mdelay *= backoff
            return f(*args, **kwargs)

        return f_retry  # true decorator

    return deco_retry
