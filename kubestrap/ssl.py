"""
ssl.py holds the certificate helpers needed around a kubeadm cluster:
computing the discovery hash of a cluster CA and creating throwaway CAs
for dry runs.
"""
# pylint: disable=too-many-arguments

import base64
import datetime

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID


def create_key(size=2048, public_exponent=65537):
    """Create an RSA private key

    Args:
        size (int) - the key bit size
        public_exponent (int) - the key public_exponent

    Return:
        rsa key object instance
    """
    return rsa.generate_private_key(
        public_exponent=public_exponent,
        key_size=size,
    )


def _name(common_name, orga=None):
    attributes = []
    if orga:
        attributes.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, orga))
    attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    return x509.Name(attributes)


def _validity(builder, days):
    now = datetime.datetime.now(datetime.timezone.utc)
    # a little buffer against clock skew between host and machines
    return builder.not_valid_before(
        now - datetime.timedelta(minutes=10)
    ).not_valid_after(
        now + datetime.timedelta(days=days))


def create_ca(private_key, name="kubernetes", days=3650):
    """
    create a self signed CA like ``kubeadm init`` does

    Args:
        private_key (inst): private key instance to sign the CA
        name (str): the common name of the CA
        days (int): how long the CA is valid

    Return:
        ssl certificate object
    """
    public_key = private_key.public_key()
    builder = x509.CertificateBuilder().subject_name(
        _name(name)
    ).issuer_name(
        _name(name)
    ).public_key(
        public_key
    ).serial_number(
        x509.random_serial_number()
    )
    builder = _validity(builder, days)
    builder = builder.add_extension(
        x509.KeyUsage(True, False, True, False, False, True,
                      False, False, False),
        critical=True)
    builder = builder.add_extension(x509.BasicConstraints(True, None),
                                    critical=True)
    builder = builder.add_extension(
        x509.SubjectKeyIdentifier.from_public_key(public_key),
        critical=False)

    return builder.sign(private_key, hashes.SHA256())


def create_signed(ca_key, ca_cert, public_key, name, orga=None, days=365):
    """create a client certificate for ``name`` signed by the CA"""
    builder = x509.CertificateBuilder().subject_name(
        _name(name, orga)
    ).issuer_name(
        ca_cert.subject
    ).public_key(
        public_key
    ).serial_number(
        x509.random_serial_number()
    )
    builder = _validity(builder, days)
    builder = builder.add_extension(x509.BasicConstraints(False, None),
                                    critical=True)
    return builder.sign(ca_key, hashes.SHA256())


def b64_key(key):
    """encode private bytes of a key to base64"""

    key_bytes = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption())

    return base64.b64encode(key_bytes).decode()


def b64_cert(cert):
    """encode public bytes of a cert to base64"""
    return base64.b64encode(
        cert.public_bytes(serialization.Encoding.PEM)).decode()


def load_b64_cert(data):
    """
    load a certificate from base64 encoded PEM data, the way it is
    embedded in a kubeconfig

    Raises:
        ValueError if data is not a certificate
    """
    try:
        pem = base64.b64decode(data, validate=True)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"certificate data is not base64: {exc}")
    return x509.load_pem_x509_certificate(pem)


def discovery_hash(cert):
    """
    calculate a discovery hash based on the cert's public key

    This is what ``kubeadm join --discovery-token-ca-cert-hash`` expects
    after the ``sha256:`` prefix.
    """
    pub_key = cert.public_key()
    digest = hashes.Hash(hashes.SHA256())
    digest.update(pub_key.public_bytes(
        serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo))
    return digest.finalize().hex()
