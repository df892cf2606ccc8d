"""Ed25519 request signing using PyNaCl.

A request is signed over ``timestamp\\nMETHOD\\npath\\nsha256(body)`` and
presented as ``Authorization: ProfileSig <profile_id>:<hex signature>``.
"""

import hashlib
import secrets
import uuid
from datetime import UTC, datetime

from nacl.encoding import HexEncoder
from nacl.exceptions import BadSignatureError, CryptoError
from nacl.signing import SigningKey, VerifyKey

AUTH_SCHEME = "ProfileSig"


def generate_keypair() -> tuple[str, str]:
    """Returns (private_key_hex, public_key_hex)."""
    signing_key = SigningKey.generate()
    return (
        signing_key.encode(encoder=HexEncoder).decode(),
        signing_key.verify_key.encode(encoder=HexEncoder).decode(),
    )


def canonical_request(timestamp: str, method: str, path: str, body: bytes) -> bytes:
    return "\n".join(
        (timestamp, method.upper(), path, hashlib.sha256(body).hexdigest())
    ).encode()


def sign_request(
    private_key_hex: str, timestamp: str, method: str, path: str, body: bytes
) -> str:
    signing_key = SigningKey(private_key_hex.encode(), encoder=HexEncoder)
    signed = signing_key.sign(
        canonical_request(timestamp, method, path, body), encoder=HexEncoder
    )
    return signed.signature.decode()


def verify_signature(
    public_key_hex: str,
    signature_hex: str,
    timestamp: str,
    method: str,
    path: str,
    body: bytes,
) -> bool:
    try:
        verify_key = VerifyKey(public_key_hex.encode(), encoder=HexEncoder)
        verify_key.verify(
            canonical_request(timestamp, method, path, body),
            HexEncoder.decode(signature_hex.encode()),
        )
    except (BadSignatureError, CryptoError, ValueError, TypeError):
        return False
    return True


def parse_authorization(header: str) -> tuple[uuid.UUID, str] | None:
    """Split a ProfileSig header into (profile_id, signature); None if malformed."""
    scheme, _, credentials = header.partition(" ")
    if scheme != AUTH_SCHEME or not credentials:
        return None
    profile_id, sep, signature = credentials.partition(":")
    if not sep or not signature:
        return None
    try:
        return uuid.UUID(profile_id), signature
    except ValueError:
        return None


def generate_nonce() -> str:
    return secrets.token_hex(16)


def is_timestamp_valid(timestamp: str, max_age_seconds: int = 30) -> bool:
    """Timestamps must be timezone-aware and within the freshness window."""
    try:
        ts = datetime.fromisoformat(timestamp)
    except (ValueError, TypeError):
        return False
    if ts.tzinfo is None:
        return False
    return abs((datetime.now(UTC) - ts).total_seconds()) <= max_age_seconds
