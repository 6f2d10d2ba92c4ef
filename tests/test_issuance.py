"""
Issuance, signing capabilities and verifying-party tests.
"""

import base64
import dataclasses
import json
import logging
import os
import tempfile
import unittest
from unittest import mock

from nacl.signing import SigningKey

from identity_claims import (
    IdentityTier,
    KycDecision,
    issue_claim,
    ClaimSigner,
    Ed25519ClaimSigner,
    FileClaimSigner,
    AwsKmsClaimSigner,
    get_claim_signer,
    sign_claim,
    sign_data,
    create_claim,
    verify_signed_claim,
    verify_signature,
    serialize_claim,
    TrustStore,
    ClaimVerifier,
    VerificationOutcome,
    TierLimits,
    RiskThresholds,
    effective_limit,
    RiskScoreOutOfRange,
    SigningError,
    UnknownTier,
    ValidationError,
    FailureCode,
)
from identity_claims import config
from identity_claims.fixtures import generate_key_pair, generate_signed_claim_with_expiry
from identity_claims.logging_config import (
    StructuredFormatter,
    configure_logging,
    mask_sensitive,
    set_request_id,
    get_request_id,
)

NOW = 1_700_000_000
ADDRESS = "G" + "A" * 55
ISSUER = "G" + "I" * 55

# DER SubjectPublicKeyInfo header for an Ed25519 key
ED25519_SPKI_HEADER = bytes.fromhex("302a300506032b6570032100")


class FakeKmsClient:
    """Stands in for boto3's KMS client, backed by a local key."""

    def __init__(self, signing_key: SigningKey):
        self._sk = signing_key
        self.calls = []

    def sign(self, KeyId, Message, MessageType, SigningAlgorithm):
        self.calls.append((KeyId, MessageType, SigningAlgorithm))
        return {"Signature": self._sk.sign(Message).signature, "KeyId": KeyId}

    def get_public_key(self, KeyId):
        return {"PublicKey": ED25519_SPKI_HEADER + bytes(self._sk.verify_key)}


class ShortSigner(ClaimSigner):
    key_id = "short"

    def sign(self, payload):
        return b"\x00" * 10

    def public_key(self):
        return b"\x00" * 32


class BrokenSigner(ClaimSigner):
    def sign(self, payload):
        raise ConnectionError("custody service unreachable")

    def public_key(self):
        return b""


class TestKycDecision(unittest.TestCase):

    def test_defaults_to_configured_validity(self):
        decision = KycDecision(address=ADDRESS, tier=2, risk_score=25)
        self.assertEqual(decision.tier, IdentityTier.VERIFIED)
        self.assertEqual(decision.validity_seconds, config.CLAIM_VALIDITY_SECONDS)

    def test_issue_claim(self):
        kp = generate_key_pair()
        decision = KycDecision(address=ADDRESS, tier=IdentityTier.PREMIUM,
                               risk_score=5, validity_seconds=600)
        signed = issue_claim(decision, ISSUER, kp.signer(), now=NOW)
        self.assertEqual(signed.issuer, ISSUER)
        self.assertEqual(signed.expiry, NOW + 600)
        self.assertEqual(signed.tier, IdentityTier.PREMIUM)
        verify_signed_claim(signed, kp.verify_key)

    def test_issue_claim_risk_out_of_range(self):
        kp = generate_key_pair()
        decision = KycDecision(address=ADDRESS, tier=1, risk_score=101)
        with self.assertRaises(RiskScoreOutOfRange):
            issue_claim(decision, ISSUER, kp.signer(), now=NOW)

    def test_issue_claim_uses_configured_issuer(self):
        kp = generate_key_pair()
        decision = KycDecision(address=ADDRESS, tier=1, risk_score=10)
        with mock.patch.object(config, "CLAIM_ISSUER", "GCONFIGURED"):
            signed = issue_claim(decision, None, kp.signer(), now=NOW)
        self.assertEqual(signed.issuer, "GCONFIGURED")


class TestSigners(unittest.TestCase):

    def test_ed25519_signer_public_key(self):
        kp = generate_key_pair()
        signer = kp.signer()
        self.assertEqual(signer.public_key(), kp.verify_key)
        self.assertEqual(len(signer.sign(b"payload")), 64)

    def test_sign_data_matches_verify_signature(self):
        kp = generate_key_pair()
        sig = sign_data(b"payload", kp.signing_key)
        self.assertTrue(verify_signature(b"payload", sig, kp.verify_key))
        self.assertFalse(verify_signature(b"payload!", sig, kp.verify_key))
        self.assertFalse(verify_signature(b"payload", sig[:10], kp.verify_key))

    def test_file_signer(self):
        kp = generate_key_pair()
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "key.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"kid": "issuer-01",
                           "private_key_b64": base64.b64encode(kp.signing_key).decode()}, f)
            signer = FileClaimSigner(path)
            via_factory = get_claim_signer("file", signing_key_path=path)

        self.assertEqual(signer.key_id, "issuer-01")
        self.assertEqual(signer.public_key(), kp.verify_key)
        self.assertIsInstance(via_factory, FileClaimSigner)

    def test_malformed_key_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "key.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"private_key_b64": ""}, f)
            with self.assertRaises(SigningError):
                FileClaimSigner(path)

    def test_kms_signer(self):
        sk = SigningKey.generate()
        client = FakeKmsClient(sk)
        signer = AwsKmsClaimSigner("alias/claims", kid="kms-01", client=client)

        claim = create_claim(ADDRESS, IdentityTier.BASIC, 10, 60, now=NOW)
        claim.issuer = ISSUER
        signed = sign_claim(claim, signer)

        self.assertEqual(signer.public_key(), bytes(sk.verify_key))
        verify_signed_claim(signed, signer.public_key())
        self.assertEqual(client.calls, [("alias/claims", "RAW", "ED25519_SHA_512")])

    def test_factory_kms_requires_key_id(self):
        with mock.patch.object(config, "AWS_KMS_KEY_ID", ""):
            with self.assertRaises(ValueError):
                get_claim_signer("aws_kms")

    def test_factory_kms(self):
        signer = get_claim_signer("aws_kms", kms_key_id="alias/claims", kms_kid="kms-01")
        self.assertIsInstance(signer, AwsKmsClaimSigner)
        self.assertEqual(signer.key_id, "kms-01")

    def test_factory_unknown_type(self):
        with self.assertRaises(ValueError):
            get_claim_signer("hsm")

    def test_wrong_length_signature_rejected(self):
        claim = create_claim(ADDRESS, IdentityTier.BASIC, 10, 60, now=NOW)
        claim.issuer = ISSUER
        with self.assertRaises(SigningError):
            sign_claim(claim, ShortSigner())

    def test_capability_failure_wrapped(self):
        claim = create_claim(ADDRESS, IdentityTier.BASIC, 10, 60, now=NOW)
        claim.issuer = ISSUER
        with self.assertRaises(SigningError) as ctx:
            sign_claim(claim, BrokenSigner())
        self.assertIsInstance(ctx.exception.__cause__, ConnectionError)
        self.assertEqual(ctx.exception.code, FailureCode.CRYPTO)


class TestClaimVerifier(unittest.TestCase):

    def setUp(self):
        self.kp = generate_key_pair()
        self.store = TrustStore.from_dict({
            "issuer_keys": {ISSUER: base64.b64encode(self.kp.verify_key).decode()}
        })
        _, self.signed = generate_signed_claim_with_expiry(
            ADDRESS, IdentityTier.VERIFIED, 25, NOW + 100, self.kp, issuer=ISSUER
        )

    def test_valid(self):
        result = ClaimVerifier(self.store).check(self.signed, now=NOW)
        self.assertTrue(result.is_valid())
        self.assertEqual(result.to_dict(), {"outcome": "VALID"})

    def test_unknown_issuer(self):
        _, signed = generate_signed_claim_with_expiry(
            ADDRESS, IdentityTier.VERIFIED, 25, NOW + 100, self.kp, issuer="GOTHER"
        )
        result = ClaimVerifier(self.store).check(signed, now=NOW)
        self.assertEqual(result.outcome, VerificationOutcome.UNKNOWN_ISSUER)

    def test_invalid_signature(self):
        impostor = generate_key_pair()
        _, forged = generate_signed_claim_with_expiry(
            ADDRESS, IdentityTier.PREMIUM, 0, NOW + 100, impostor, issuer=ISSUER
        )
        result = ClaimVerifier(self.store).check(forged, now=NOW)
        self.assertEqual(result.outcome, VerificationOutcome.INVALID_SIGNATURE)
        self.assertEqual(result.to_dict()["failure_code"], "BAD_SIGNATURE")

    def test_expired_is_distinct_from_invalid(self):
        result = ClaimVerifier(self.store).check(self.signed, now=NOW + 100)
        self.assertEqual(result.outcome, VerificationOutcome.EXPIRED)

    def test_clock_skew_tolerance(self):
        verifier = ClaimVerifier(self.store, clock_skew=30)
        self.assertTrue(verifier.check(self.signed, now=NOW + 100).is_valid())
        self.assertTrue(verifier.check(self.signed, now=NOW + 129).is_valid())
        self.assertEqual(verifier.check(self.signed, now=NOW + 130).outcome,
                         VerificationOutcome.EXPIRED)

    def test_revoked(self):
        denied = {(self.signed.issuer, self.signed.address, self.signed.expiry)}
        verifier = ClaimVerifier(
            self.store, is_revoked=lambda c: (c.issuer, c.address, c.expiry) in denied
        )
        self.assertEqual(verifier.check(self.signed, now=NOW).outcome,
                         VerificationOutcome.REVOKED)

    def test_invalid_claim_field(self):
        _, signed = generate_signed_claim_with_expiry(
            ADDRESS, IdentityTier.VERIFIED, 250, NOW + 100, self.kp, issuer=ISSUER
        )
        result = ClaimVerifier(self.store).check(signed, now=NOW)
        self.assertEqual(result.outcome, VerificationOutcome.INVALID_CLAIM)

    def test_trust_store_membership(self):
        self.assertIn(ISSUER, self.store)
        self.assertEqual(len(self.store), 1)
        self.assertIsNone(self.store.get("GNOBODY"))

    def test_unencodable_fields_are_invalid_signature(self):
        verifier = ClaimVerifier(self.store)
        for change in ({"risk_score": -1}, {"expiry": 2**64}, {"address": "\ud800"}):
            with self.subTest(**change):
                result = verifier.check(dataclasses.replace(self.signed, **change), now=NOW)
                self.assertEqual(result.outcome, VerificationOutcome.INVALID_SIGNATURE)
                self.assertEqual(result.to_dict()["failure_code"], "BAD_SIGNATURE")

    def test_forged_signature_raises_security_event(self):
        forged = dataclasses.replace(self.signed, tier=IdentityTier.PREMIUM)
        with self.assertLogs("identity_claims.audit", level="WARNING") as logs:
            ClaimVerifier(self.store).check(forged, now=NOW)
        security = [r for r in logs.records
                    if r.extra_fields["event_type"] == "SECURITY_EVENT"]
        self.assertEqual(len(security), 1)
        self.assertEqual(security[0].levelno, logging.ERROR)
        self.assertEqual(security[0].extra_fields["security_event"], "forged_claim_signature")
        self.assertEqual(security[0].extra_fields["issuer"], ISSUER)
        self.assertNotIn(ADDRESS, security[0].extra_fields["address"])

    def test_unknown_issuer_raises_no_security_event(self):
        _, signed = generate_signed_claim_with_expiry(
            ADDRESS, IdentityTier.VERIFIED, 25, NOW + 100, self.kp, issuer="GOTHER"
        )
        with self.assertLogs("identity_claims.audit", level="INFO") as logs:
            ClaimVerifier(self.store).check(signed, now=NOW)
        events = [r.extra_fields["event_type"] for r in logs.records]
        self.assertEqual(events, ["CLAIM_VERIFIED"])

    def test_trust_store_rejects_bad_base64(self):
        for bad in ("not base64!", "QUJD=extra", 12345):
            with self.subTest(key=bad):
                with self.assertRaises(ValidationError) as ctx:
                    TrustStore.from_dict({"issuer_keys": {ISSUER: bad}})
                self.assertEqual(ctx.exception.field, "issuer_keys")

    def test_trust_store_rejects_wrong_length_key(self):
        short = base64.b64encode(b"\x01" * 31).decode()
        with self.assertRaises(ValidationError):
            TrustStore.from_dict({"issuer_keys": {ISSUER: short}})
        with self.assertRaises(ValidationError):
            TrustStore({ISSUER: b"\x01" * 33})


class TestTierLimits(unittest.TestCase):

    def test_default_limits(self):
        limits = TierLimits()
        self.assertEqual(effective_limit(IdentityTier.UNVERIFIED, 0), 100_0000000)
        self.assertEqual(effective_limit(IdentityTier.BASIC, 0), 1000_0000000)
        self.assertEqual(effective_limit(IdentityTier.VERIFIED, 0), 10000_0000000)
        self.assertEqual(effective_limit(IdentityTier.PREMIUM, 69), 100000_0000000)
        self.assertEqual(limits.to_dict()["premium_limit"], 100000_0000000)

    def test_high_risk_halves_limit(self):
        self.assertEqual(effective_limit(IdentityTier.VERIFIED, 70), 5000_0000000)
        self.assertEqual(effective_limit(2, 100), 5000_0000000)

    def test_custom_thresholds(self):
        thresholds = RiskThresholds(high_risk_threshold=50, high_risk_multiplier=10)
        limits = TierLimits(basic_limit=999)
        self.assertEqual(effective_limit(1, 50, limits, thresholds), 99)

    def test_expired_falls_back_to_unverified(self):
        self.assertEqual(effective_limit(IdentityTier.PREMIUM, 90, expired=True), 100_0000000)

    def test_unknown_tier(self):
        with self.assertRaises(UnknownTier):
            effective_limit(7, 0)


class TestAuditLogging(unittest.TestCase):

    def test_creation_and_signing_events(self):
        kp = generate_key_pair()
        with self.assertLogs("identity_claims.audit", level="INFO") as logs:
            claim = create_claim(ADDRESS, IdentityTier.BASIC, 10, 60, now=NOW)
            claim.issuer = ISSUER
            sign_claim(claim, kp.signer())
        events = [r.extra_fields["event_type"] for r in logs.records]
        self.assertEqual(events, ["CLAIM_CREATED", "CLAIM_SIGNED"])
        self.assertNotIn(ADDRESS, logs.records[0].extra_fields["address"])

    def test_structured_formatter(self):
        set_request_id("req-123")
        try:
            record = logging.LogRecord("identity_claims.audit", logging.INFO, __file__, 1,
                                       "hello", (), None)
            record.extra_fields = {"event_type": "CLAIM_CREATED"}
            line = json.loads(StructuredFormatter().format(record))
        finally:
            set_request_id("")
        self.assertEqual(line["message"], "hello")
        self.assertEqual(line["request_id"], "req-123")
        self.assertEqual(line["event_type"], "CLAIM_CREATED")
        self.assertEqual(get_request_id(), "")

    def test_configure_logging_uses_config_defaults(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            with mock.patch.object(config, "LOG_LEVEL", "DEBUG"), \
                    mock.patch.object(config, "LOG_JSON", True):
                configure_logging()
            self.assertEqual(root.level, logging.DEBUG)
            self.assertEqual(len(root.handlers), 1)
            self.assertIsInstance(root.handlers[0].formatter, StructuredFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_validate_config(self):
        with mock.patch.object(config, "CLAIM_ISSUER", ""), \
                mock.patch.object(config, "SIGNER_TYPE", "aws_kms"), \
                mock.patch.object(config, "AWS_KMS_KEY_ID", "alias/claims"):
            checks = config.validate_config()
        self.assertEqual(checks, {"issuer": False, "validity": True, "kms_key_id": True})

    def test_mask_sensitive(self):
        self.assertEqual(mask_sensitive("GABCDEFG"), "****DEFG")
        self.assertEqual(mask_sensitive("abc"), "***")

    def test_signatures_never_logged(self):
        kp = generate_key_pair()
        claim = create_claim(ADDRESS, IdentityTier.BASIC, 10, 60, now=NOW)
        claim.issuer = ISSUER
        with self.assertLogs("identity_claims.audit", level="INFO") as logs:
            signed = sign_claim(claim, kp.signer())
        self.assertFalse(any(signed.signature_b64 in line for line in logs.output))
        self.assertEqual(len(serialize_claim(signed)), 56 + 16 + 56)


if __name__ == "__main__":
    unittest.main()
