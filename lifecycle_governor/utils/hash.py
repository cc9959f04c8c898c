"""Hashing helpers."""

import hashlib


def compute_id_hash(resource_id: str) -> str:
    """Compute a filesystem-safe SHA256 digest of a resource identifier.

    Args:
        resource_id: Provider resource identifier (ARNs contain ':' and '/')

    Returns:
        Hex-encoded SHA256 digest
    """
    return hashlib.sha256(resource_id.encode("utf-8")).hexdigest()
