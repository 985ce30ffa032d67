from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEADER = "X-Hub-Signature"
SIGNATURE_ALGORITHM = "sha1"


class SignatureMismatch(ValueError):
    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            f"Signature validation failed. Expected: {expected}, actual: {actual}"
        )
        self.expected = expected
        self.actual = actual


def sign_payload(payload: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha1).hexdigest()
    return f"{SIGNATURE_ALGORITHM}={digest}"


def verify_signature(payload: bytes, signature: str, secret: str) -> None:
    """
    Check a GitHub style `sha1=<hex>` HMAC of the raw body.

    Raises SignatureMismatch carrying both values for logging.
    """
    expected = sign_payload(payload, secret)
    actual = signature or ""
    if not hmac.compare_digest(expected.encode("utf-8"), actual.encode("utf-8")):
        raise SignatureMismatch(expected=expected, actual=actual)
