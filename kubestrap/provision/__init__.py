"""

.. _userdata:

kubestrap.provision.userdata
----------------------------

bootstrap.sh
~~~~~~~~~~~~

The default bootstrap script. It is uploaded to every machine and run
as root with the arguments of the node's invocation:

.. code:: shell

    bootstrap.sh master <MASTER_IP> <WORKER_COUNT>
    bootstrap.sh worker <MASTER_IP> <WORKER_COUNT> <TOKEN> <DISCOVERY_HASH>

On the master it runs ``kubeadm init``, copies ``admin.conf`` to the
shared ``/vagrant`` folder and prints a fresh ``kubeadm join`` command
as its last line. On a worker it waits for the API server and joins.

Any script following the same calling convention can be configured
with ``bootstrap-script``.

.. literalinclude:: ../kubestrap/provision/userdata/bootstrap.sh
   :language: shell

"""
import os

USERDATA_DIR = os.path.join(os.path.dirname(__file__), "userdata")
DEFAULT_BOOTSTRAP_SCRIPT = os.path.join(USERDATA_DIR, "bootstrap.sh")
