import threading

import pytest

from covenant.app.domain.attestation import AttestationRecord
from covenant.app.domain.errors import (
    InvalidSignatureError,
    InvalidStateError,
    MissingSignatureError,
    ValidationError,
)
from covenant.app.domain.models import AttestationRead, AttestationState, SignatureKind


def _record(alice, bob, payload="deliver 100 grams of gold", **kwargs):
    # alice commits, bob is the committee
    return AttestationRecord(
        committer_xpub=alice.xpub,
        committee_xpub=bob.xpub,
        payload=payload,
        **kwargs,
    )


def _effective(alice, bob):
    record = _record(alice, bob)
    record.set_committee_signature(record.sign(bob.mnemonic))
    record.acknowledge()
    record.set_committer_signature(record.sign(alice.mnemonic))
    record.accept()
    return record


def test_full_lifecycle(alice, bob):
    record = _record(alice, bob)
    assert record.state == AttestationState.INITIATED
    assert record.committer_key != record.committee_key
    keys = (record.committer_key, record.committee_key)

    record.set_committee_signature(record.sign(bob.mnemonic))
    assert record.acknowledge() == AttestationState.ACKNOWLEDGED
    assert (record.committer_key, record.committee_key) == keys

    record.set_committer_signature(record.sign(alice.mnemonic))
    assert record.accept() == AttestationState.EFFECTIVE
    assert (record.committer_key, record.committee_key) == keys

    record.set_discharge_signature(record.sign_discharge(alice.mnemonic))
    assert record.discharge() == AttestationState.DISCHARGED
    assert record.state == AttestationState.DISCHARGED
    assert (record.committer_key, record.committee_key) == keys


def test_keys_depend_on_attestation_id(alice, bob):
    first = _record(alice, bob, attestation_id="a-1")
    again = _record(alice, bob, attestation_id="a-1")
    other = _record(alice, bob, attestation_id="a-2")
    assert first.committer_key == again.committer_key
    assert first.committer_key != other.committer_key


def test_generated_ids_are_unique(alice, bob):
    assert _record(alice, bob).id != _record(alice, bob).id


def test_out_of_order_transitions(alice, bob):
    record = _record(alice, bob)
    with pytest.raises(InvalidStateError):
        record.accept()
    with pytest.raises(InvalidStateError):
        record.discharge()

    record = _effective(alice, bob)
    with pytest.raises(InvalidStateError):
        record.acknowledge()
    with pytest.raises(InvalidStateError):
        record.accept()


def _at(alice, bob, state):
    record = _record(alice, bob)
    if state in (AttestationState.ACKNOWLEDGED, AttestationState.EFFECTIVE):
        record.set_committee_signature(record.sign(bob.mnemonic))
        record.acknowledge()
    if state is AttestationState.EFFECTIVE:
        record.set_committer_signature(record.sign(alice.mnemonic))
        record.accept()
    return record


# (state before the gate, gate, slot setter, signer of a wrong-but-well-formed signature)
GATES = [
    (AttestationState.INITIATED, "acknowledge", "set_committee_signature", lambda r, a, b: r.sign(a.mnemonic)),
    (AttestationState.ACKNOWLEDGED, "accept", "set_committer_signature", lambda r, a, b: r.sign(b.mnemonic)),
    (AttestationState.EFFECTIVE, "discharge", "set_discharge_signature", lambda r, a, b: r.sign(a.mnemonic)),
]


@pytest.mark.parametrize("state, gate, setter, wrong_signer", GATES)
def test_gate_requires_signature(alice, bob, state, gate, setter, wrong_signer):
    record = _at(alice, bob, state)
    with pytest.raises(MissingSignatureError):
        getattr(record, gate)()
    assert record.state == state


@pytest.mark.parametrize("state, gate, setter, wrong_signer", GATES)
def test_gate_rejects_invalid_signature(alice, bob, state, gate, setter, wrong_signer):
    record = _at(alice, bob, state)
    getattr(record, setter)(wrong_signer(record, alice, bob))
    with pytest.raises(InvalidSignatureError):
        getattr(record, gate)()
    assert record.state == state


def test_caller_mutation_does_not_reach_record(alice, bob, gold):
    record = _record(alice, bob, payload=gold)
    record.set_committee_signature(record.sign(bob.mnemonic))
    gold["quantity"] = 1
    assert record.acknowledge() == AttestationState.ACKNOWLEDGED
    assert record.payload["quantity"] == 100

    record.payload["quantity"] = 2
    assert record.read().payload["quantity"] == 100
    record.to_dict()["payload"]["quantity"] = 3
    assert record.to_dict()["payload"]["quantity"] == 100


def test_wrong_party_signature_is_rejected_without_mutation(alice, bob):
    record = _record(alice, bob)
    # committer signs in the committee slot
    record.set_committee_signature(record.sign(alice.mnemonic))
    with pytest.raises(InvalidSignatureError):
        record.acknowledge()
    assert record.state == AttestationState.INITIATED


def test_signature_from_other_attestation_is_rejected(alice, bob):
    first = _record(alice, bob)
    second = _record(alice, bob, payload=first.payload)
    second.set_committee_signature(first.sign(bob.mnemonic))
    with pytest.raises(InvalidSignatureError):
        second.acknowledge()


def test_payload_signature_does_not_discharge(alice, bob):
    record = _effective(alice, bob)
    record.set_discharge_signature(record.sign(alice.mnemonic))
    with pytest.raises(InvalidSignatureError):
        record.discharge()
    assert record.state == AttestationState.EFFECTIVE


def test_discharge_must_come_from_committer(alice, bob):
    record = _effective(alice, bob)
    record.set_discharge_signature(record.sign_discharge(bob.mnemonic))
    with pytest.raises(InvalidSignatureError):
        record.discharge()


def test_consumed_signatures_are_frozen(alice, bob):
    record = _effective(alice, bob)
    with pytest.raises(InvalidStateError):
        record.set_committee_signature(None)
    with pytest.raises(InvalidStateError):
        record.set_signature(SignatureKind.COMMITTER, record.sign(alice.mnemonic))
    # the discharge slot is still open
    record.set_discharge_signature(record.sign_discharge(alice.mnemonic))
    record.set_discharge_signature(None)
    assert record.discharge_signature is None


def test_setter_rejects_malformed_signature(alice, bob):
    record = _record(alice, bob)
    with pytest.raises(ValidationError):
        record.set_committee_signature("not hex")


def test_verify_signature(alice, bob):
    record = _record(alice, bob)
    assert record.verify_signature(SignatureKind.COMMITTEE, record.sign(bob.mnemonic))
    assert not record.verify_signature(SignatureKind.COMMITTEE, record.sign(alice.mnemonic))
    assert record.verify_signature("committer", record.sign(alice.mnemonic))


def test_round_trip_through_dict(alice, bob):
    record = _effective(alice, bob)
    data = record.to_dict()
    assert data["state"] == "EFFECTIVE"

    restored = AttestationRecord.from_dict(data)
    assert restored.state == AttestationState.EFFECTIVE
    assert restored.committee_key == record.committee_key
    restored.set_discharge_signature(restored.sign_discharge(alice.mnemonic))
    assert restored.discharge() == AttestationState.DISCHARGED


def test_rehydration_requires_signatures_for_state(alice, bob):
    with pytest.raises(MissingSignatureError):
        _record(alice, bob, state=AttestationState.EFFECTIVE)


def test_rehydration_rejects_tampered_payload(alice, bob):
    data = _effective(alice, bob).to_dict()
    data["payload"] = "deliver 1 gram of gold"
    with pytest.raises(InvalidSignatureError):
        AttestationRecord.from_dict(data)


def test_rehydration_rejects_foreign_keys(alice, bob, carol):
    data = _record(alice, bob).to_dict()
    data["committee_key"] = _record(alice, carol, attestation_id=data["id"]).committee_key
    with pytest.raises(ValidationError):
        AttestationRecord.from_dict(data)

    del data["committer_xpub"]
    with pytest.raises(ValidationError):
        AttestationRecord.from_dict(data)


@pytest.mark.parametrize("snapshot_id", [None, ""])
def test_rehydration_requires_id(alice, bob, snapshot_id):
    data = _record(alice, bob).to_dict()
    data["id"] = snapshot_id
    for field in ("committer_key", "committee_key"):
        del data[field]
    with pytest.raises(ValidationError):
        AttestationRecord.from_dict(data)


@pytest.mark.parametrize("snapshot", [[], "id", None])
def test_rehydration_rejects_non_mapping(snapshot):
    with pytest.raises(ValidationError):
        AttestationRecord.from_dict(snapshot)


def test_unknown_state_rejected(alice, bob):
    with pytest.raises(ValidationError):
        _record(alice, bob, state="SETTLED")


def test_read_model(alice, bob, gold):
    read = _record(alice, bob, payload=gold).read()
    assert isinstance(read, AttestationRead)
    assert read.payload == gold
    assert read.committee_signature is None


def test_concurrent_acknowledge_applies_once(alice, bob):
    record = _record(alice, bob)
    record.set_committee_signature(record.sign(bob.mnemonic))
    outcomes = []

    def worker():
        try:
            outcomes.append(record.acknowledge())
        except InvalidStateError as exc:
            outcomes.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count(AttestationState.ACKNOWLEDGED) == 1
    assert sum(isinstance(o, InvalidStateError) for o in outcomes) == 3
