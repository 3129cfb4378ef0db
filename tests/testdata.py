"""Defines test data shared among tests"""

# pylint: disable=invalid-name,missing-docstring

TOKEN = "abcdef.0123456789abcdef"
DISCOVERY_HASH = "sha256:" + "a1" * 32

KUBEADM_INIT_OUTPUT = """\
[init] Using Kubernetes version: v1.28.2
[preflight] Running pre-flight checks
[certs] Generating "ca" certificate and key
[kubeconfig] Writing "admin.conf" kubeconfig file
[bootstrap-token] Using token: abcdef.0123456789abcdef

Your Kubernetes control-plane has initialized successfully!

To start using your cluster, you need to run the following as a regular user:

  mkdir -p $HOME/.kube
  sudo cp -i /etc/kubernetes/admin.conf $HOME/.kube/config

Then you can join any number of worker nodes by running the following on each as root:

kubeadm join 192.168.56.10:6443 --token abcdef.0123456789abcdef \\
\t--discovery-token-ca-cert-hash sha256:{hash}
""".format(hash="a1" * 32)

# kubeadm token create --print-join-command
PRINT_JOIN_COMMAND = ("kubeadm join 192.168.56.10:6443 --token "
                      "zyxwvu.9876543210fedcba --discovery-token-ca-cert-hash "
                      "sha256:" + "b2" * 32 + " \n")

TWO_JOIN_COMMANDS = KUBEADM_INIT_OUTPUT + PRINT_JOIN_COMMAND

MISSING_HASH = ("kubeadm join 192.168.56.10:6443 --token "
                "abcdef.0123456789abcdef\n")

MALFORMED_TOKEN = ("kubeadm join 192.168.56.10:6443 --token ABCDEF.short "
                   "--discovery-token-ca-cert-hash " + DISCOVERY_HASH + "\n")

SHORT_HASH = ("kubeadm join 192.168.56.10:6443 --token "
              "abcdef.0123456789abcdef "
              "--discovery-token-ca-cert-hash sha256:abc123\n")

NO_JOIN = """\
[init] Using Kubernetes version: v1.28.2
error execution phase preflight: [preflight] Some fatal errors occurred:
\t[ERROR NumCPU]: the number of available CPUs 1 is less than the required 2
"""

VAGRANT_STATUS_RUNNING = """\
1700000000,k8s-master,metadata,provider,virtualbox
1700000000,k8s-master,provider-name,virtualbox
1700000000,k8s-master,state,running
1700000000,k8s-master,state-human-short,running
"""

VAGRANT_STATUS_NOT_CREATED = """\
1700000000,k8s-worker-1,metadata,provider,virtualbox
1700000000,k8s-worker-1,state,not_created
"""

NAUGHTY_STRINGS = [
    "",
    "None",
    "0",
    "1.0",
    "-1",
    "192.168.56.256",
    "::g",
    "社會科學院語學研究所",
    "😍",
    "<script>alert(123)</script>",
    "'; DROP TABLE nodes; --",
]
