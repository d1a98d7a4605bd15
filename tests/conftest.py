"""
Pytest configuration and fixtures for identity provider tests.

Provides fixtures for:
- Signing keys (P-256 for client secrets, RSA for ID tokens)
- Apple-style JWKS documents
- Recording HTTP transport doubles
- Fixed clocks
"""

import base64
from datetime import datetime, timezone
from typing import Callable, List

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from provider_auth.core.auth.registry import clear_providers

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def int_to_base64url(value: int) -> str:
    """Convert integer to base64url encoding"""
    value_bytes = value.to_bytes((value.bit_length() + 7) // 8, byteorder="big")
    return base64.urlsafe_b64encode(value_bytes).rstrip(b"=").decode("utf-8")


@pytest.fixture(scope="session")
def ec_private_key() -> ec.EllipticCurvePrivateKey:
    """P-256 key used to sign client secrets."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def ec_private_key_pem(ec_private_key) -> str:
    """PKCS8 PEM text of the P-256 key."""
    return ec_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """RSA key standing in for Apple's ID token signing key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_private_key_pem(rsa_private_key) -> str:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture(scope="session")
def jwks(rsa_private_key) -> dict:
    """JWKS publishing the RSA public key under kid "test-kid"."""
    public_numbers = rsa_private_key.public_key().public_numbers()
    return {
        "keys": [
            {
                "kty": "RSA",
                "kid": "test-kid",
                "use": "sig",
                "alg": "RS256",
                "n": int_to_base64url(public_numbers.n),
                "e": int_to_base64url(public_numbers.e),
            }
        ]
    }


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def http_calls() -> List[httpx.Request]:
    """Requests seen by the mock transport."""
    return []


@pytest.fixture
def mock_http(http_calls) -> Callable:
    """Build an AsyncClient whose transport records requests and answers with handler."""

    def _build(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        def _record(request: httpx.Request) -> httpx.Response:
            http_calls.append(request)
            return handler(request)

        return httpx.AsyncClient(transport=httpx.MockTransport(_record))

    return _build


@pytest.fixture(autouse=True)
def reset_registry():
    """Keep the provider registry isolated between tests."""
    clear_providers()
    yield
    clear_providers()
