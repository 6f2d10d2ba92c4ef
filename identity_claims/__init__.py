"""
Identity Claims

Version: 0.1.0
License: Apache 2.0

Off-chain issuance and verification of signed KYC identity claims.

A claim binds a chain address to a verification tier, a risk score and an
expiry. The issuer signs the canonical bytes with Ed25519; an on-chain escrow
policy (or any other holder of the issuer's public key) recomputes the same
bytes and checks the signature before granting tier-based payout limits.

Wire format:
    [address][tier u32 BE][risk_score u32 BE][expiry u64 BE][issuer]

Usage:
    from identity_claims import (
        IdentityTier,
        create_claim,
        sign_claim,
        verify_signed_claim,
        validate,
    )

    # Build the unsigned claim from a KYC decision
    claim = create_claim("GAAA...", IdentityTier.VERIFIED, 25, timedelta(days=30))

    # Assign the issuer, then sign through a signing capability
    claim.issuer = "GISSUER..."
    signed = sign_claim(claim, signer)

    # Anyone holding the issuer's public key
    verify_signed_claim(signed, issuer_public_key)  # raises InvalidSignature
    validate(signed)                                # raises on expiry / bad fields
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

# Core types
from .claim import (
    IdentityTier,
    IdentityClaim,
    SignedClaim,
    create_claim,
    now_epoch,
)

# Canonical encoding
from .canonicalization import (
    serialize_claim,
    deserialize_claim,
    STELLAR_ADDRESS_LENGTH,
)

# Signing
from .signing import (
    ClaimSigner,
    Ed25519ClaimSigner,
    FileClaimSigner,
    AwsKmsClaimSigner,
    get_claim_signer,
    sign_claim,
    sign_data,
)

# Verification
from .verifier import (
    verify_claim,
    verify_signed_claim,
    verify_signature,
    TrustStore,
    ClaimVerifier,
    VerificationOutcome,
    VerificationResult,
)

# Business validation
from .validation import is_expired, validate

# Issuance
from .issuance import KycDecision, issue_claim

# Limits
from .limits import TierLimits, RiskThresholds, effective_limit

# Errors
from .errors import (
    FailureCode,
    ClaimError,
    ValidationError,
    RiskScoreOutOfRange,
    ExpiryNotFuture,
    EmptyAddress,
    EmptyIssuer,
    UnknownTier,
    SerializationError,
    CryptoError,
    SigningError,
    InvalidSignature,
    ExpiredClaimError,
)


__all__ = [
    # Version
    "__version__",

    # Claim
    "IdentityTier",
    "IdentityClaim",
    "SignedClaim",
    "create_claim",
    "now_epoch",

    # Canonicalization
    "serialize_claim",
    "deserialize_claim",
    "STELLAR_ADDRESS_LENGTH",

    # Signing
    "ClaimSigner",
    "Ed25519ClaimSigner",
    "FileClaimSigner",
    "AwsKmsClaimSigner",
    "get_claim_signer",
    "sign_claim",
    "sign_data",

    # Verifier
    "verify_claim",
    "verify_signed_claim",
    "verify_signature",
    "TrustStore",
    "ClaimVerifier",
    "VerificationOutcome",
    "VerificationResult",

    # Validation
    "is_expired",
    "validate",

    # Issuance
    "KycDecision",
    "issue_claim",

    # Limits
    "TierLimits",
    "RiskThresholds",
    "effective_limit",

    # Errors
    "FailureCode",
    "ClaimError",
    "ValidationError",
    "RiskScoreOutOfRange",
    "ExpiryNotFuture",
    "EmptyAddress",
    "EmptyIssuer",
    "UnknownTier",
    "SerializationError",
    "CryptoError",
    "SigningError",
    "InvalidSignature",
    "ExpiredClaimError",
]
