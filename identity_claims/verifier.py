"""
Identity Claim Verification

Recomputes the canonical bytes and checks the Ed25519 signature against the
issuer's public key. verify_claim() performs no business validation: a claim
that is "authentically issued but now expired" is a different outcome from
one that was "never validly issued".

ClaimVerifier bundles the checks a verifying party usually runs together
(issuer key lookup, signature, optional deny-list, expiry and field checks)
and reports a single VerificationOutcome.
"""

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

from . import config
from .canonicalization import serialize_claim
from .claim import IdentityClaim, SignedClaim, now_epoch
from .errors import (
    ClaimError,
    ExpiredClaimError,
    InvalidSignature,
    SerializationError,
    ValidationError,
)
from .logging_config import audit_log, mask_sensitive
from .validation import validate

PublicKey = Union[VerifyKey, bytes]


def _as_verify_key(verify_key: PublicKey) -> VerifyKey:
    if isinstance(verify_key, VerifyKey):
        return verify_key
    try:
        return VerifyKey(bytes(verify_key))
    except (ValueError, TypeError) as exc:
        raise InvalidSignature(f"malformed public key: {exc}") from exc


def verify_claim(
    claim: Union[IdentityClaim, SignedClaim],
    signature: bytes,
    verify_key: PublicKey
) -> None:
    """
    Verify a claim signature using the issuer's public key.

    Raises:
        InvalidSignature: wrong key, tampered claim, or tampered signature
    """
    try:
        message = serialize_claim(claim)
    except SerializationError as exc:
        # A claim that cannot be encoded was never validly signed
        audit_log.signature_rejected(str(claim.address), str(claim.issuer), "unencodable claim")
        raise InvalidSignature(f"claim cannot be encoded: {exc.message}") from exc

    key = _as_verify_key(verify_key)

    try:
        key.verify(message, bytes(signature))
    except BadSignatureError as exc:
        audit_log.signature_rejected(claim.address, claim.issuer, "signature mismatch")
        raise InvalidSignature() from exc
    except (ValueError, TypeError) as exc:
        audit_log.signature_rejected(claim.address, claim.issuer, "malformed signature")
        raise InvalidSignature(f"malformed signature: {exc}") from exc


def verify_signed_claim(signed: SignedClaim, verify_key: PublicKey) -> None:
    """Verify a SignedClaim against the issuer's public key."""
    verify_claim(signed, signed.signature, verify_key)


def verify_signature(data: bytes, signature: bytes, verify_key: bytes) -> bool:
    """Verify Ed25519 signature."""
    try:
        key = VerifyKey(verify_key)
        key.verify(data, signature)
        return True
    except (BadSignatureError, ValueError, TypeError):
        return False


class TrustStore:
    """
    Read-only mapping of issuer identifier to Ed25519 public key.

    JSON shape: {"issuer_keys": {"<issuer>": "<base64 public key>"}}
    """

    def __init__(self, issuer_keys: Mapping[str, PublicKey]):
        self._keys: Dict[str, VerifyKey] = {}
        for issuer, key in issuer_keys.items():
            try:
                self._keys[issuer] = _as_verify_key(key)
            except InvalidSignature as exc:
                raise ValidationError(
                    f"malformed public key for issuer {issuer!r}", field="issuer_keys"
                ) from exc

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TrustStore':
        entries = data.get("issuer_keys", {})
        keys = {}
        for issuer, key_b64 in entries.items():
            try:
                keys[issuer] = base64.b64decode(key_b64, validate=True)
            except (binascii.Error, ValueError, TypeError) as exc:
                raise ValidationError(
                    f"public key for issuer {issuer!r} is not valid base64", field="issuer_keys"
                ) from exc
        return cls(keys)

    def get(self, issuer: str) -> Optional[VerifyKey]:
        return self._keys.get(issuer)

    def __contains__(self, issuer: str) -> bool:
        return issuer in self._keys

    def __len__(self) -> int:
        return len(self._keys)


class VerificationOutcome(str, Enum):
    """
    Verification outcomes.

    VALID: authentic and currently valid
    UNKNOWN_ISSUER: no trusted key for the claim's issuer
    INVALID_SIGNATURE: never validly issued (or tampered with)
    REVOKED: authentic but on the caller's deny-list
    EXPIRED: authentic but past its expiry
    INVALID_CLAIM: authentic but a field is out of its domain
    """
    VALID = "VALID"
    UNKNOWN_ISSUER = "UNKNOWN_ISSUER"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    REVOKED = "REVOKED"
    EXPIRED = "EXPIRED"
    INVALID_CLAIM = "INVALID_CLAIM"


@dataclass
class VerificationResult:
    """Result of checking a signed claim."""
    outcome: VerificationOutcome
    reason: Optional[str] = None
    error: Optional[ClaimError] = None

    def is_valid(self) -> bool:
        return self.outcome == VerificationOutcome.VALID

    def to_dict(self) -> Dict[str, Any]:
        d = {"outcome": self.outcome.value}
        if self.reason:
            d["reason"] = self.reason
        if self.error is not None:
            d["failure_code"] = self.error.code.value
        return d


class ClaimVerifier:
    """
    Verifying-party helper.

    Args:
        trust_store: Issuer -> public key mapping
        clock_skew: Seconds of tolerance granted past expiry (default from config)
        is_revoked: Optional deny-list predicate owned by the caller
    """

    def __init__(
        self,
        trust_store: TrustStore,
        clock_skew: Optional[int] = None,
        is_revoked: Optional[Callable[[SignedClaim], bool]] = None
    ):
        self.trust_store = trust_store
        self.clock_skew = config.CLAIM_CLOCK_SKEW_SECONDS if clock_skew is None else clock_skew
        self.is_revoked = is_revoked

    def check(self, signed: SignedClaim, now: Optional[int] = None) -> VerificationResult:
        result = self._check(signed, now)
        audit_log.claim_verified(signed.address, signed.issuer, result.outcome.value)
        return result

    def _check(self, signed: SignedClaim, now: Optional[int]) -> VerificationResult:
        key = self.trust_store.get(signed.issuer)
        if key is None:
            return VerificationResult(
                VerificationOutcome.UNKNOWN_ISSUER,
                reason=f"No trusted key for issuer {signed.issuer!r}"
            )

        try:
            verify_signed_claim(signed, key)
        except InvalidSignature as exc:
            # Trusted issuer named, signature does not hold: possible forgery
            audit_log.security_event(
                "forged_claim_signature",
                severity="high",
                issuer=signed.issuer,
                address=mask_sensitive(str(signed.address)),
            )
            return VerificationResult(
                VerificationOutcome.INVALID_SIGNATURE, reason=exc.message, error=exc
            )

        if self.is_revoked is not None and self.is_revoked(signed):
            return VerificationResult(VerificationOutcome.REVOKED, reason="Claim is revoked")

        if now is None:
            now = now_epoch()

        try:
            validate(signed, now - self.clock_skew)
        except ExpiredClaimError as exc:
            return VerificationResult(VerificationOutcome.EXPIRED, reason=exc.message, error=exc)
        except ClaimError as exc:
            return VerificationResult(
                VerificationOutcome.INVALID_CLAIM, reason=exc.message, error=exc
            )

        return VerificationResult(VerificationOutcome.VALID)
