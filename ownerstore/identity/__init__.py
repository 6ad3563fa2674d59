"""Owner binding and access gating."""

from ownerstore.identity.binder import (
    IdentityBinder,
    OwnerRecord,
    identity_digest,
    normalize_identity,
)
from ownerstore.identity.gate import AccessAttempt, AccessGate, Decision

__all__ = [
    "AccessAttempt",
    "AccessGate",
    "Decision",
    "IdentityBinder",
    "OwnerRecord",
    "identity_digest",
    "normalize_identity",
]
