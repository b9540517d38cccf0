"""Shared fixtures: a throwaway Nitro-like PKI and COSE_Sign1 document signer."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import cbor2
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from cryptography.x509.oid import NameOID

# 2021-03-05 18:00:00 UTC, inside the leaf validity window below
REFERENCE_TIME = 1614967200
# 2021-03-05 17:31:49.123 UTC
DOCUMENT_TIMESTAMP_MS = 1614965509123
LEAF_NOT_BEFORE = datetime(2021, 3, 5, 17, 1, 49, tzinfo=timezone.utc)
LEAF_NOT_AFTER = datetime(2021, 3, 5, 20, 1, 49, tzinfo=timezone.utc)
MODULE_ID = "i-0f1e2d3c4b5a69788-enc0123456789abcdef"


def make_name(common_name: str) -> x509.Name:
    return x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Amazon"),
        x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, "AWS"),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])


def make_certificate(
    subject_cn: str,
    public_key: Any,
    issuer_cn: str,
    issuer_key: Any,
    not_before: datetime,
    not_after: datetime,
    ca: bool,
    hash_algorithm: Optional[hashes.HashAlgorithm] = None,
    extended_key_usage: Optional[List[x509.ObjectIdentifier]] = None,
) -> bytes:
    """Issue a DER certificate. hash_algorithm=None is required for Ed25519 issuers."""
    builder = (
        x509.CertificateBuilder()
        .subject_name(make_name(subject_cn))
        .issuer_name(make_name(issuer_cn))
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=ca,
                crl_sign=ca,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_key.public_key()),
            critical=False,
        )
    )
    if extended_key_usage is not None:
        builder = builder.add_extension(x509.ExtendedKeyUsage(extended_key_usage), critical=False)

    cert = builder.sign(issuer_key, hash_algorithm)
    return cert.public_bytes(serialization.Encoding.DER)


def set_certificate_version(cert_der: bytes, version: int) -> bytes:
    """Rewrite the explicit [0] version field of a v3 certificate."""
    marker = b"\xa0\x03\x02\x01\x02"
    offset = cert_der.index(marker) + len(marker) - 1
    mutated = bytearray(cert_der)
    mutated[offset] = version
    return bytes(mutated)


@dataclass
class Pki:
    root_key: ec.EllipticCurvePrivateKey
    root_der: bytes
    intermediate_key: ec.EllipticCurvePrivateKey
    intermediate_der: bytes
    leaf_key: ec.EllipticCurvePrivateKey
    leaf_der: bytes

    def issue_leaf(self, public_key: Any, **kwargs: Any) -> bytes:
        """Issue another leaf under the same intermediate."""
        options = dict(
            not_before=LEAF_NOT_BEFORE,
            not_after=LEAF_NOT_AFTER,
            ca=False,
            hash_algorithm=hashes.SHA384(),
        )
        options.update(kwargs)
        return make_certificate(
            "i-0f1e2d3c4b5a69788.us-east-1.aws.nitro-enclaves",
            public_key,
            "zonal.us-east-1.aws.nitro-enclaves",
            self.intermediate_key,
            **options,
        )


@pytest.fixture(scope="session")
def pki() -> Pki:
    root_key = ec.generate_private_key(ec.SECP384R1())
    intermediate_key = ec.generate_private_key(ec.SECP384R1())
    leaf_key = ec.generate_private_key(ec.SECP384R1())

    root_der = make_certificate(
        "aws.nitro-enclaves", root_key.public_key(), "aws.nitro-enclaves", root_key,
        datetime(2019, 10, 28, 13, 28, 5, tzinfo=timezone.utc),
        datetime(2049, 10, 28, 14, 28, 5, tzinfo=timezone.utc),
        ca=True, hash_algorithm=hashes.SHA384(),
    )
    intermediate_der = make_certificate(
        "zonal.us-east-1.aws.nitro-enclaves", intermediate_key.public_key(),
        "aws.nitro-enclaves", root_key,
        datetime(2021, 3, 1, tzinfo=timezone.utc),
        datetime(2021, 3, 30, tzinfo=timezone.utc),
        ca=True, hash_algorithm=hashes.SHA384(),
    )
    pki = Pki(root_key, root_der, intermediate_key, intermediate_der, leaf_key, b"")
    pki.leaf_der = pki.issue_leaf(leaf_key.public_key())
    return pki


@pytest.fixture(scope="session")
def other_root(pki: Pki) -> bytes:
    """Self-signed root with the same name as the real one but a different key."""
    key = ec.generate_private_key(ec.SECP384R1())
    return make_certificate(
        "aws.nitro-enclaves", key.public_key(), "aws.nitro-enclaves", key,
        datetime(2019, 10, 28, tzinfo=timezone.utc),
        datetime(2049, 10, 28, tzinfo=timezone.utc),
        ca=True, hash_algorithm=hashes.SHA384(),
    )


def _sign(
    payload_bytes: bytes,
    key: ec.EllipticCurvePrivateKey,
    protected: Optional[bytes] = None,
    unprotected: Optional[Dict[Any, Any]] = None,
) -> bytes:
    protected_bytes = cbor2.dumps({1: -35}) if protected is None else protected
    sig_structure = cbor2.dumps(["Signature1", protected_bytes, b"", payload_bytes])
    r, s = decode_dss_signature(key.sign(sig_structure, ec.ECDSA(hashes.SHA384())))
    signature = r.to_bytes(48, "big") + s.to_bytes(48, "big")
    return cbor2.dumps([protected_bytes, unprotected if unprotected is not None else {}, payload_bytes, signature])


@pytest.fixture
def make_payload(pki: Pki) -> Callable[..., Dict[str, Any]]:
    def _make(**overrides: Any) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "module_id": MODULE_ID,
            "digest": "SHA384",
            "timestamp": DOCUMENT_TIMESTAMP_MS,
            "pcrs": {i: bytes([i]) * 48 for i in range(16)},
            "certificate": pki.leaf_der,
            "cabundle": [pki.root_der, pki.intermediate_der],
            "public_key": None,
            "user_data": b"ed25519-pubkey:" + b"\x07" * 32,
            "nonce": b"\x5a" * 20,
        }
        payload.update(overrides)
        return payload
    return _make


@pytest.fixture
def make_document(pki: Pki, make_payload: Callable[..., Dict[str, Any]]) -> Callable[..., bytes]:
    """Build and sign a document; keyword arguments override payload fields."""
    def _make(
        key: Optional[ec.EllipticCurvePrivateKey] = None,
        protected: Optional[bytes] = None,
        unprotected: Optional[Dict[Any, Any]] = None,
        **overrides: Any,
    ) -> bytes:
        payload_bytes = cbor2.dumps(make_payload(**overrides))
        return _sign(payload_bytes, key or pki.leaf_key, protected, unprotected)
    return _make


@pytest.fixture
def sign_payload(pki: Pki) -> Callable[..., bytes]:
    """Sign raw payload bytes with the leaf key (or another key)."""
    def _sign_payload(payload_bytes: bytes, key: Optional[ec.EllipticCurvePrivateKey] = None, **kwargs: Any) -> bytes:
        return _sign(payload_bytes, key or pki.leaf_key, **kwargs)
    return _sign_payload


@pytest.fixture
def document(make_document: Callable[..., bytes]) -> bytes:
    return make_document()
