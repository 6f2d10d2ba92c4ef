"""
Deterministic helpers for test harnesses.

Not part of the trust boundary: keys generated here are throwaway.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Tuple, Union

from nacl.signing import SigningKey

from .claim import IdentityClaim, IdentityTier, SignedClaim, coerce_tier, create_claim
from .signing import Ed25519ClaimSigner, sign_claim

TEST_ISSUER = "test-issuer"


@dataclass
class KeyPair:
    """Ed25519 key pair for signing test claims."""
    signing_key: bytes
    verify_key: bytes

    def signer(self, key_id: str = "test-key") -> Ed25519ClaimSigner:
        return Ed25519ClaimSigner(self.signing_key, key_id=key_id)


def generate_key_pair(seed: Optional[bytes] = None) -> KeyPair:
    """
    Generate an Ed25519 key pair.

    A 32-byte seed makes the pair reproducible across runs.
    """
    sk = SigningKey(seed) if seed is not None else SigningKey.generate()
    return KeyPair(signing_key=bytes(sk), verify_key=bytes(sk.verify_key))


def generate_signed_claim(
    address: str,
    tier: Union[IdentityTier, int],
    risk_score: int,
    key_pair: KeyPair,
    validity: Union[timedelta, int] = timedelta(hours=1),
    issuer: str = TEST_ISSUER,
    now: Optional[int] = None
) -> Tuple[IdentityClaim, SignedClaim]:
    """Create a claim valid for one hour (by default) and sign it."""
    claim = create_claim(address, tier, risk_score, validity, now=now)
    claim.issuer = issuer
    return claim, sign_claim(claim, key_pair.signer())


def generate_signed_claim_with_expiry(
    address: str,
    tier: Union[IdentityTier, int],
    risk_score: int,
    expiry: int,
    key_pair: KeyPair,
    issuer: str = TEST_ISSUER
) -> Tuple[IdentityClaim, SignedClaim]:
    """Sign a claim with an arbitrary expiry, past ones included."""
    claim = IdentityClaim(
        address=address,
        tier=coerce_tier(tier),
        risk_score=risk_score,
        expiry=expiry,
        issuer=issuer,
    )
    return claim, sign_claim(claim, key_pair.signer())
