"""Order-sensitive content digest used as the cache key for stage layers."""

from __future__ import annotations

import hashlib
from collections.abc import Sequence

DIGEST_LENGTH = 64


def _as_bytes(value: object, index: int) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    raise TypeError(
        f"hashsum values must be str or bytes (index={index}, type={type(value).__name__})"
    )


def hashsum(values: Sequence[str | bytes]) -> str:
    """Return the SHA-256 hex digest of an ordered sequence of values.

    Each element is length-prefixed before hashing, so element boundaries are
    part of the digest: ``hashsum(["ab"]) != hashsum(["a", "b"])``.
    """

    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise TypeError(
            f"hashsum expects a sequence of str/bytes (type={type(values).__name__})"
        )

    digest = hashlib.sha256()
    for index, value in enumerate(values):
        payload = _as_bytes(value, index)
        digest.update(str(len(payload)).encode("ascii"))
        digest.update(b":")
        digest.update(payload)
    return digest.hexdigest()
