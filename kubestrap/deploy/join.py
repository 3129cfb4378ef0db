"""
Join credentials
================

The master's bootstrap run ends with a ``kubeadm join`` command, as
printed by ``kubeadm init`` or ``kubeadm token create --print-join-command``.
:class:`JoinCredentialBroker` pulls the bootstrap token and the CA
discovery hash out of that output so they can be handed to the workers.

A credential is only ever produced complete and well formed, anything
else raises :class:`kubestrap.errors.CredentialExtractionFailed`.
"""
import os
import random
import re
import string
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from kubestrap.deploy.kubeconfig import cluster_ca_data, load_kubeconfig
from kubestrap.errors import CredentialExtractionFailed
from kubestrap.ssl import discovery_hash, load_b64_cert
from kubestrap.util.logger import Logger

LOGGER = Logger(__name__)

# kubeadm bootstrap tokens look like abcdef.0123456789abcdef
TOKEN_RE = re.compile(r"^[a-z0-9]{6}\.[a-z0-9]{16}$")
DISCOVERY_HASH_RE = re.compile(r"^sha256:[a-f0-9]{64}$")

_JOIN_RE = re.compile(r"kubeadm\s+join\b(?P<args>[^\n]*)")
_TOKEN_ARG_RE = re.compile(r"--token(?:=|\s+)(?P<value>\S+)")
_HASH_ARG_RE = re.compile(
    r"--discovery-token-ca-cert-hash(?:=|\s+)(?P<value>\S+)")
_ENDPOINT_RE = re.compile(
    r"(?:^|\s)(?P<endpoint>(?:\[[0-9a-fA-F:.]+\]|[\w.-]+):\d{1,5})(?=\s|$)")

DEFAULT_TOKEN_TTL = timedelta(hours=24)


def create_bootstrap_token():
    """create a new random bootstrap token like f62bcr.fedcba9876543210,
    a valid token matches the expression [a-z0-9]{6}.[a-z0-9]{16}"""
    alphabet = string.ascii_lowercase + string.digits
    token = "".join(random.choice(alphabet) for n in range(6))
    token += "."
    token += "".join(random.choice(alphabet) for n in range(16))
    return token


@dataclass(frozen=True)
class JoinCredential:
    """Everything a worker needs to join the cluster.

    Attributes:
        token (str): the bootstrap token ``<id>.<secret>``
        discovery_hash (str): ``sha256:<hex>`` of the cluster CA public key
        issued_at (datetime): when the credential was extracted
        expires_at (datetime): when the token stops working, if known
        api_endpoint (str): ``host:port`` of the API server, if known
    """
    token: str
    discovery_hash: str
    issued_at: datetime
    expires_at: Optional[datetime] = None
    api_endpoint: Optional[str] = None

    def expired(self, now=None):
        """True if the token is past its expiry"""
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    def join_command(self, api_endpoint=None):
        """render the ``kubeadm join`` command for this credential"""
        endpoint = api_endpoint or self.api_endpoint
        if not endpoint:
            raise ValueError("no API server endpoint known for join command")
        return ("kubeadm join %s --token %s "
                "--discovery-token-ca-cert-hash %s" % (
                    endpoint, self.token, self.discovery_hash))

    def export(self, path, api_endpoint=None):
        """Write the join command to ``path`` readable only by the owner.

        Credentials are held in memory for the duration of a run, this is
        the only way they are persisted.
        """
        content = "#!/bin/sh\n%s\n" % self.join_command(api_endpoint)
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as fh:
            fh.write(content)
        os.chmod(path, 0o600)
        return path

    def as_dict(self):
        """a representation safe for reports, the token secret is masked"""
        token_id = self.token.split(".", 1)[0]
        return {'token': "%s.%s" % (token_id, "*" * 16),
                'discovery-hash': self.discovery_hash,
                'api-endpoint': self.api_endpoint,
                'issued-at': self.issued_at.isoformat(),
                'expires-at': (self.expires_at.isoformat()
                               if self.expires_at else None)}


def _normalize(master_output):
    if master_output is None:
        raise CredentialExtractionFailed("master produced no output",
                                         step="extract")
    if isinstance(master_output, bytes):
        master_output = master_output.decode("utf-8", errors="replace")
    # join commands are usually wrapped with a trailing backslash,
    # and may have been written on windows
    text = master_output.replace("\r\n", "\n")
    return re.sub(r"\\\n\s*", " ", text)


class JoinCredentialBroker:
    """Extract and check join credentials.

    Args:
        ttl (timedelta): lifetime assumed for extracted tokens, ``None``
            for tokens that never expire. kubeadm defaults to 24 hours.
        clock (callable): returns the current time, for tests
    """

    def __init__(self, ttl=DEFAULT_TOKEN_TTL, clock=None):
        self.ttl = ttl
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def extract(self, master_output) -> JoinCredential:
        """Parse the last ``kubeadm join`` command found in the output.

        Args:
            master_output (str or bytes): stdout of the master bootstrap or
                the content of a join script

        Raises:
            CredentialExtractionFailed if no complete, well formed join
            command is present.
        """
        text = _normalize(master_output)
        matches = list(_JOIN_RE.finditer(text))
        if not matches:
            raise CredentialExtractionFailed(
                "no 'kubeadm join' command found in master output",
                step="extract")

        args = matches[-1].group("args")
        token = _TOKEN_ARG_RE.search(args)
        dhash = _HASH_ARG_RE.search(args)
        if not token or not dhash:
            raise CredentialExtractionFailed(
                "join command lacks --token or --discovery-token-ca-cert-hash",
                step="extract")

        token, dhash = token.group("value"), dhash.group("value")
        if not TOKEN_RE.match(token):
            raise CredentialExtractionFailed(
                "malformed bootstrap token", step="extract")
        if not DISCOVERY_HASH_RE.match(dhash):
            raise CredentialExtractionFailed(
                "malformed discovery hash %r" % dhash, step="extract")

        # drop the values of --token and the hash before looking for the
        # positional host:port
        rest = _HASH_ARG_RE.sub(" ", _TOKEN_ARG_RE.sub(" ", args))
        endpoint = _ENDPOINT_RE.search(rest)
        endpoint = endpoint.group("endpoint") if endpoint else None

        issued_at = self.clock()
        expires_at = issued_at + self.ttl if self.ttl else None
        LOGGER.debug("extracted join credential %s.*** for %s",
                     token.split(".")[0], endpoint)
        return JoinCredential(token=token,
                              discovery_hash=dhash,
                              issued_at=issued_at,
                              expires_at=expires_at,
                              api_endpoint=endpoint)

    def extract_file(self, path) -> JoinCredential:
        """Same as :meth:`extract`, reading a join script from ``path``"""
        try:
            with open(path, "rb") as fh:
                data = fh.read()
        except OSError as exc:
            raise CredentialExtractionFailed(
                f"can't read join artifact {path}: {exc}", step="extract")
        return self.extract(data)

    @staticmethod
    def verify(credential, kubeconfig_path):
        """Check the credential's discovery hash against a kubeconfig's CA.

        Returns:
            True if the hash matches, False if the kubeconfig carries no
            embedded CA to compare with.

        Raises:
            CredentialExtractionFailed if the hashes differ or the CA can't
            be parsed.
        """
        try:
            config = load_kubeconfig(kubeconfig_path)
        except (OSError, ValueError) as exc:
            raise CredentialExtractionFailed(
                f"can't read {kubeconfig_path}: {exc}", step="verify")
        ca_data = cluster_ca_data(config)
        if not ca_data:
            LOGGER.warning("%s has no embedded CA, can't verify the "
                           "discovery hash", kubeconfig_path)
            return False

        try:
            expected = "sha256:" + discovery_hash(load_b64_cert(ca_data))
        except ValueError as exc:
            raise CredentialExtractionFailed(
                f"can't parse the CA of {kubeconfig_path}: {exc}",
                step="verify")

        if expected != credential.discovery_hash:
            raise CredentialExtractionFailed(
                "discovery hash does not match the CA in %s" % kubeconfig_path,
                step="verify")
        return True
