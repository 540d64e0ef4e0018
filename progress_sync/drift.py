"""Content fingerprinting and drift detection.

The checksum recorded in a checkpoint is the only thing trusted to say
whether the plan document and the checkpoint still agree.
"""

import hashlib

FINGERPRINT_PREFIX = "sha256:"
FINGERPRINT_LENGTH = 16


def fingerprint(content: str) -> str:
    """Return a short, deterministic tag for document content."""
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()
    return f"{FINGERPRINT_PREFIX}{digest[:FINGERPRINT_LENGTH]}"


def has_drifted(prior_tag: str | None, content: str) -> bool:
    """True if content no longer matches prior_tag, or there is no prior tag."""
    if not prior_tag:
        return True
    return fingerprint(content) != prior_tag
