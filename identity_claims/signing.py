"""
Identity Claim Signing

Uses Ed25519 (RFC 8032) over the canonical claim bytes.

Signing goes through a ClaimSigner: a narrow capability that exposes only
"sign these bytes" and the matching public key. Callers inject a capability
instead of passing raw private keys around, and nothing here keeps a
reference to it after sign_claim() returns. Key generation, storage and
rotation belong to the key-custody service behind the capability.
"""

import base64
import json
import threading
from abc import ABC, abstractmethod
from typing import Optional, Union

from nacl.signing import SigningKey

from . import config
from .canonicalization import serialize_claim
from .claim import IdentityClaim, SignedClaim
from .errors import ClaimError, EmptyAddress, EmptyIssuer, SigningError
from .logging_config import audit_log

SIGNATURE_SIZE = 64
PUBLIC_KEY_SIZE = 32


class ClaimSigner(ABC):
    """Abstract signing capability for claim issuers."""

    key_id: str = ""

    @abstractmethod
    def sign(self, payload: bytes) -> bytes:
        """
        Sign a payload and return the raw 64-byte Ed25519 signature.

        Args:
            payload: The canonical claim bytes to sign
        """
        pass

    @abstractmethod
    def public_key(self) -> bytes:
        """Return the raw 32-byte Ed25519 public key."""
        pass


class Ed25519ClaimSigner(ClaimSigner):
    """In-memory Ed25519 signer."""

    def __init__(self, signing_key: Union[SigningKey, bytes], key_id: str = "ed25519"):
        if not isinstance(signing_key, SigningKey):
            signing_key = SigningKey(bytes(signing_key))
        self._sk = signing_key
        self.key_id = key_id

    def sign(self, payload: bytes) -> bytes:
        return self._sk.sign(payload).signature

    def public_key(self) -> bytes:
        return bytes(self._sk.verify_key)


class FileClaimSigner(Ed25519ClaimSigner):
    """
    Ed25519 signer whose seed is read from a JSON key file.

    File format: {"kid": "...", "private_key_b64": "<base64 32-byte seed>"}
    """

    def __init__(self, signing_key_path: str):
        with open(signing_key_path, "r", encoding="utf-8") as f:
            raw = json.load(f)

        try:
            seed = base64.b64decode(raw["private_key_b64"])
            kid = raw["kid"]
        except (KeyError, ValueError) as exc:
            raise SigningError(f"Malformed signing key file: {signing_key_path}") from exc

        super().__init__(seed, key_id=kid)


class AwsKmsClaimSigner(ClaimSigner):
    """
    AWS KMS signing capability using Ed25519 keys.

    Requires a SIGN_VERIFY KMS key with ED25519 support.
    Uses KMS Sign API with SigningAlgorithm ED25519_SHA_512 and MessageType RAW.

    Docs: https://docs.aws.amazon.com/kms/latest/APIReference/API_Sign.html
    """

    def __init__(
        self,
        kms_key_id: str,
        region: Optional[str] = None,
        kid: Optional[str] = None,
        client=None
    ):
        self._kms_key_id = kms_key_id
        self._region = region
        self.key_id = kid or "aws-kms-ed25519"
        self._client = client
        self._public_key: Optional[bytes] = None
        self._lock = threading.RLock()

    def _get_client(self):
        """Lazy-load boto3 client."""
        with self._lock:
            if self._client is None:
                try:
                    import boto3
                except ImportError as e:
                    raise RuntimeError(
                        "boto3 required for AWS KMS signing. Install with: pip install boto3"
                    ) from e
                self._client = boto3.client("kms", region_name=self._region)
            return self._client

    def sign(self, payload: bytes) -> bytes:
        """Sign payload using AWS KMS."""
        resp = self._get_client().sign(
            KeyId=self._kms_key_id,
            Message=payload,
            MessageType="RAW",
            SigningAlgorithm="ED25519_SHA_512"
        )
        return resp["Signature"]

    def public_key(self) -> bytes:
        """Fetch the public key once; KMS returns DER SubjectPublicKeyInfo."""
        with self._lock:
            if self._public_key is None:
                resp = self._get_client().get_public_key(KeyId=self._kms_key_id)
                # Ed25519 SPKI is a 12-byte header followed by the raw key
                self._public_key = bytes(resp["PublicKey"])[-PUBLIC_KEY_SIZE:]
            return self._public_key


def get_claim_signer(
    signer_type: Optional[str] = None,
    signing_key_path: Optional[str] = None,
    kms_key_id: Optional[str] = None,
    kms_region: Optional[str] = None,
    kms_kid: Optional[str] = None
) -> ClaimSigner:
    """
    Factory function to create the configured signing capability.

    Unset arguments fall back to the values in identity_claims.config.

    Args:
        signer_type: "file" or "aws_kms"
        signing_key_path: Path to signing key JSON (for file signer)
        kms_key_id: AWS KMS key ID (for KMS signer)
        kms_region: AWS region (for KMS signer)
        kms_kid: Key ID to report for KMS signatures

    Returns:
        Configured ClaimSigner instance
    """
    signer_type = signer_type or config.SIGNER_TYPE

    if signer_type == "aws_kms":
        kms_key_id = kms_key_id or config.AWS_KMS_KEY_ID
        if not kms_key_id:
            raise ValueError("AWS_KMS_KEY_ID required for aws_kms signer")
        return AwsKmsClaimSigner(
            kms_key_id=kms_key_id,
            region=kms_region or config.AWS_REGION or None,
            kid=kms_kid or config.AWS_KMS_KID
        )

    if signer_type != "file":
        raise ValueError(f"Unknown signer type: {signer_type}")

    return FileClaimSigner(signing_key_path or config.SIGNING_KEY_PATH)


def sign_claim(claim: IdentityClaim, signer: Union[ClaimSigner, SigningKey]) -> SignedClaim:
    """
    Sign a finalized claim.

    Args:
        claim: Claim with address and issuer set
        signer: Signing capability (a bare nacl SigningKey is wrapped)

    Returns:
        SignedClaim holding a frozen copy of the claim and its signature

    Raises:
        EmptyAddress / EmptyIssuer: claim is not finalized
        SigningError: the capability failed or returned a malformed signature
    """
    if not claim.address:
        raise EmptyAddress()
    if not claim.issuer:
        raise EmptyIssuer()

    if isinstance(signer, SigningKey):
        signer = Ed25519ClaimSigner(signer)

    message = serialize_claim(claim)

    try:
        signature = signer.sign(message)
    except ClaimError:
        raise
    except Exception as exc:
        raise SigningError(f"Signing failed: {exc}") from exc

    if len(signature) != SIGNATURE_SIZE:
        raise SigningError(
            f"Signer returned {len(signature)}-byte signature, expected {SIGNATURE_SIZE}"
        )

    signed = SignedClaim.of(claim, signature)
    audit_log.claim_signed(claim.address, claim.issuer, key_id=getattr(signer, "key_id", None))
    return signed


def sign_data(data: bytes, signing_key: bytes) -> bytes:
    """Sign data with Ed25519 signing key."""
    key = SigningKey(signing_key)
    return key.sign(data).signature
