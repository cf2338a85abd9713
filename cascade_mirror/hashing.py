"""Content fingerprints used for snapshot change detection."""

import hashlib


def fingerprint(content: str) -> str:
    """Return a short digest of ``content``.

    Only compared for equality between consecutive snapshots. Not an identity
    and not a security primitive.
    """
    return hashlib.blake2b(content.encode("utf-8", "surrogatepass"), digest_size=8).hexdigest()
