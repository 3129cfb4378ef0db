"""Tests for the kubestrap.ssl functionality"""
import hashlib

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from kubestrap.ssl import (b64_cert, create_ca, create_key, create_signed,
                           discovery_hash, load_b64_cert)


@pytest.fixture(scope="module")
def ca():
    key = create_key()
    return key, create_ca(key)


def test_ca(ca):
    _, cert = ca
    name = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0]
    assert name.value == "kubernetes"
    assert cert.subject == cert.issuer


def test_signed(ca):
    key, cert = ca
    client = create_signed(key, cert, create_key().public_key(),
                           "kubernetes-admin", "system:masters")
    assert client.issuer == cert.subject
    orga = client.subject.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)
    assert orga[0].value == "system:masters"


def test_discovery_hash(ca):
    _, cert = ca
    der = cert.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo)
    assert discovery_hash(cert) == hashlib.sha256(der).hexdigest()


def test_b64_roundtrip(ca):
    _, cert = ca
    assert discovery_hash(load_b64_cert(b64_cert(cert))) == \
        discovery_hash(cert)


@pytest.mark.parametrize("data", ["not base64!", "aGVsbG8="])
def test_load_b64_cert_fails(data):
    with pytest.raises(ValueError):
        load_b64_cert(data)
