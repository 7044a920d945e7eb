import pytest

from covenant.app.domain.errors import ValidationError
from covenant.app.domain.models import AttestationState
from covenant.capsule import AttestationCapsule, _canonical_json, _sha256_hex


def _effective(ledger, alice, bob):
    record = ledger.open_attestation(alice.id, bob.id, {"assetName": "Gold", "quantity": 100, "unit": "grams"})
    record.set_committee_signature(record.sign(bob.mnemonic))
    record.acknowledge()
    record.set_committer_signature(record.sign(alice.mnemonic))
    record.accept()
    return record


def test_seal_and_verify(ledger, alice, bob):
    capsule = AttestationCapsule.seal(_effective(ledger, alice, bob), notes={"by": "test"})
    assert capsule.sealed_at.endswith("Z")
    assert capsule.verify() == {"ok": True, "problems": []}


def test_json_round_trip_reopens_record(ledger, alice, bob):
    record = _effective(ledger, alice, bob)
    capsule = AttestationCapsule.from_json(AttestationCapsule.seal(record).to_json())
    reopened = capsule.open()
    assert reopened.id == record.id
    assert reopened.state == AttestationState.EFFECTIVE
    assert reopened.committer_signature == record.committer_signature


def test_tampered_snapshot_fails_digest(ledger, alice, bob):
    capsule = AttestationCapsule.seal(_effective(ledger, alice, bob))
    capsule.attestation["payload"]["quantity"] = 1
    result = capsule.verify()
    assert not result["ok"]
    assert "digest mismatch" in result["problems"]


def test_forged_state_fails_even_with_fresh_digest(ledger, alice, bob):
    capsule = AttestationCapsule.seal(_effective(ledger, alice, bob))
    capsule.attestation["state"] = "DISCHARGED"
    capsule.digest = _sha256_hex(_canonical_json(capsule.attestation))
    result = capsule.verify()
    assert not result["ok"]
    assert result["problems"][0].startswith("MISSING_SIGNATURE")


def test_invalid_json():
    with pytest.raises(ValidationError):
        AttestationCapsule.from_json("{not json")
    with pytest.raises(ValidationError):
        AttestationCapsule.from_dict({"digest": "00"})


def test_non_mapping_attestation_is_reported():
    capsule = AttestationCapsule.from_json('{"attestation": [], "digest": "x"}')
    result = capsule.verify()
    assert not result["ok"]
    assert "digest mismatch" in result["problems"]
    assert any(p.startswith("VALIDATION_ERROR") for p in result["problems"])


def test_capsule_must_be_object():
    with pytest.raises(ValidationError):
        AttestationCapsule.from_json("[1, 2]")
    with pytest.raises(ValidationError):
        AttestationCapsule.from_json("7")


def test_bytes_payload_cannot_be_sealed(ledger, alice, bob):
    record = ledger.open_attestation(alice.id, bob.id, b"\x00\x01raw")
    with pytest.raises(ValidationError):
        AttestationCapsule.seal(record)
