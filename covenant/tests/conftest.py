import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from covenant.app.services.ledger import AttestationLedger
from covenant.app.services.registry import ParticipantRegistry

# BIP39 reference mnemonics (valid checksums)
ABANDON = "abandon abandon abandon abandon abandon abandon abandon abandon abandon abandon abandon about"
LEGAL = "legal winner thank year wave sausage worth useful legal winner thank yellow"
LETTER = "letter advice cage absurd amount doctor acoustic avoid letter advice cage above"
ZOO = "zoo zoo zoo zoo zoo zoo zoo zoo zoo zoo zoo wrong"


def generate_keypair():
    """Random secp256k1 key pair as (32-byte secret, 33-byte compressed point)."""
    private_key = ec.generate_private_key(ec.SECP256K1())
    return (
        private_key.private_numbers().private_value.to_bytes(32, "big"),
        private_key.public_key().public_bytes(Encoding.X962, PublicFormat.CompressedPoint),
    )


@pytest.fixture
def registry():
    return ParticipantRegistry()


@pytest.fixture
def alice(registry):
    return registry.register("Alice", ABANDON)


@pytest.fixture
def bob(registry):
    return registry.register("Bob", LEGAL)


@pytest.fixture
def carol(registry):
    return registry.register("Carol", LETTER)


@pytest.fixture
def ledger(registry):
    return AttestationLedger(registry)


@pytest.fixture
def gold():
    return {"assetName": "Gold", "quantity": 100, "unit": "grams"}
