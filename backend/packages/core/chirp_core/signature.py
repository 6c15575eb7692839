"""
Push signature authentication.

Pushed feed documents carry ``X-Hub-Signature: <algo>=<hexdigest>``, an HMAC
over the raw body keyed with the feed secret shared at subscribe time.
"""

import hashlib
import hmac
import re
import secrets

from .exceptions import UnauthenticatedPush

SIGNATURE_HEADER = "X-Hub-Signature"
DEFAULT_ALGORITHM = "sha1"

# Hub Protocol 0.3 mandates sha1; newer hubs send the sha2 family.
_ALGORITHMS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha384": hashlib.sha384,
    "sha512": hashlib.sha512,
}
_SIGNATURE_RE = re.compile(r"^\s*(?P<algo>[a-z0-9]+)=(?P<digest>[0-9a-fA-F]+)\s*$")


def _key(secret: str) -> bytes:
    return secret.encode("utf-8")


def sign(secret: str, body: bytes, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """
    Compute the signature header value for a body.

    Args:
        secret: Feed secret used as HMAC key.
        body: Raw document bytes.
        algorithm: Digest name, one of sha1, sha256, sha384, sha512.

    Returns:
        Header value in ``algo=hexdigest`` form.

    Raises:
        ValueError: If the algorithm is not supported.
    """
    digestmod = _ALGORITHMS.get(algorithm)
    if digestmod is None:
        raise ValueError(f"Unsupported signature algorithm: {algorithm}")
    digest = hmac.new(_key(secret), body, digestmod).hexdigest()
    return f"{algorithm}={digest}"


def parse_signature(signature: str | None) -> tuple[str, str]:
    """
    Split a signature header into algorithm and hex digest.

    Raises:
        UnauthenticatedPush: If the header is missing or unparsable.
    """
    if not signature:
        raise UnauthenticatedPush("Missing signature")

    match = _SIGNATURE_RE.match(signature)
    if not match or match.group("algo") not in _ALGORITHMS:
        raise UnauthenticatedPush("Unparsable signature")

    return match.group("algo"), match.group("digest").lower()


def verify(secret: str, body: bytes, signature: str | None) -> bool:
    """
    Check a body against its signature in constant time.

    A missing or unparsable signature is simply not valid.
    """
    try:
        algorithm, digest = parse_signature(signature)
    except UnauthenticatedPush:
        return False

    expected = hmac.new(_key(secret), body, _ALGORITHMS[algorithm]).hexdigest()
    return hmac.compare_digest(expected, digest)


def authenticate(secret: str, body: bytes, signature: str | None) -> None:
    """
    Gate a pushed body on its signature.

    Raises:
        UnauthenticatedPush: If the signature is missing, unparsable or wrong.
    """
    parse_signature(signature)
    if not verify(secret, body, signature):
        raise UnauthenticatedPush("Signature mismatch")


def generate_secret() -> str:
    """Random HMAC key for a new feed."""
    return secrets.token_hex(32)


def generate_verify_token() -> str:
    """Random token for one subscription handshake."""
    return secrets.token_urlsafe(24)
