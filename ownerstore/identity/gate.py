"""Access gate: compares a caller identity to the bound owner."""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from ownerstore.errors import Unauthorized
from ownerstore.identity.binder import IdentityBinder, identity_digest, normalize_identity

# Compared against when no owner is bound, so an unbound store does the same work.
_UNBOUND_DIGEST = bytes(32)


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class AccessAttempt:
    """Caller digest presented to the gate. Evaluated, never stored."""

    caller_digest: bytes


class AccessGate:
    """Capability check invoked at the top of every privileged operation."""

    def __init__(self, binder: IdentityBinder):
        self.binder = binder

    def authorize(self, caller_identity: str | None) -> Decision:
        attempt = AccessAttempt(caller_digest=identity_digest(caller_identity))
        owner = self.binder.owner_digest
        # Both sides are fixed-length digests; compare_digest has no early exit.
        matched = hmac.compare_digest(attempt.caller_digest, owner or _UNBOUND_DIGEST)
        if matched and owner is not None and normalize_identity(caller_identity):
            return Decision.ALLOW
        return Decision.DENY

    def require(self, caller_identity: str | None) -> None:
        if self.authorize(caller_identity) is Decision.DENY:
            logger.debug("Access gate denied a caller")
            raise Unauthorized()
