# tests/test_access.py
"""Tests for the key-release service."""

import logging

import pytest

from artledger import AccessService, KeyStore, Ledger, OwnershipProofRequest, SignatureVerifier
from artledger.content import generate_secret
from artledger.errors import (
    AccessDenied,
    DanglingAsset,
    IntegrityFault,
    InvalidSignature,
    NotOwner,
    SecretNotFound,
    StaleRequest,
    ValidationError,
)

NOW = 1_700_000_000


class FixedClock:
    """Clock returning a settable time."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def ledger(temp_dir, config):
    return Ledger(temp_dir / "ledger", config=config)


@pytest.fixture
def keystore(temp_dir):
    return KeyStore(temp_dir / "keys")


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def service(ledger, keystore, identities, config, clock):
    return AccessService(ledger, keystore, SignatureVerifier(identities), config=config, clock=clock)


@pytest.fixture
def asset_id(ledger, keystore):
    """An asset with a stored secret, one unit held by carol."""
    secret = generate_secret()
    asset_id = ledger.create_asset(
        "alice", "c", "m", 1000, 10, [("alice", 6000), ("bob", 4000)],
        before_commit=lambda new_id: keystore.put(new_id, secret),
    )
    ledger.purchase("carol", asset_id, 1000)
    return asset_id


def proof(keypairs, name, asset_id, timestamp=NOW):
    return OwnershipProofRequest.create(keypairs[name], asset_id, timestamp)


class TestReleaseSecret:
    """Test the ownership checks."""

    def test_owner_gets_secret(self, service, keystore, keypairs, asset_id):
        secret = service.release_secret(proof(keypairs, "carol", asset_id))
        assert secret == keystore.get(asset_id)

    def test_non_owner_with_valid_signature(self, service, keypairs, asset_id):
        with pytest.raises(NotOwner):
            service.release_secret(proof(keypairs, "dave", asset_id))

    def test_payee_without_units_is_not_owner(self, service, keypairs, asset_id):
        with pytest.raises(NotOwner):
            service.release_secret(proof(keypairs, "alice", asset_id))

    def test_tampered_signature_for_owner(self, service, keypairs, asset_id):
        good = proof(keypairs, "carol", asset_id)
        forged = OwnershipProofRequest(
            identity="carol",
            asset_id=asset_id,
            timestamp=good.timestamp,
            signature=proof(keypairs, "mallory", asset_id).signature,
        )
        with pytest.raises(InvalidSignature):
            service.release_secret(forged)

    def test_signature_for_other_asset(self, service, keypairs, asset_id):
        signed_elsewhere = proof(keypairs, "carol", asset_id + 1)
        replayed = OwnershipProofRequest("carol", asset_id, NOW, signed_elsewhere.signature)
        with pytest.raises(InvalidSignature):
            service.release_secret(replayed)

    def test_stale_request(self, service, clock, keypairs, asset_id):
        """A 600 s old proof is outside the 300 s window."""
        clock.now = NOW + 600
        with pytest.raises(StaleRequest):
            service.release_secret(proof(keypairs, "carol", asset_id))

    def test_within_window(self, service, clock, keypairs, asset_id):
        clock.now = NOW + 299
        assert service.release_secret(proof(keypairs, "carol", asset_id))

    def test_future_timestamp_beyond_skew(self, service, clock, keypairs, asset_id):
        clock.now = NOW - 31
        with pytest.raises(StaleRequest):
            service.release_secret(proof(keypairs, "carol", asset_id))

    def test_future_timestamp_within_skew(self, service, clock, keypairs, asset_id):
        clock.now = NOW - 30
        assert service.release_secret(proof(keypairs, "carol", asset_id))

    def test_oversized_timestamp_is_stale(self, service, keypairs, asset_id):
        """An integer timestamp far beyond float range is denied like any stale proof."""
        request = OwnershipProofRequest("carol", asset_id, 10**400, "AAAA")
        with pytest.raises(StaleRequest):
            service.release_secret(request)

    def test_far_past_timestamp_is_stale(self, service, keypairs, asset_id):
        request = OwnershipProofRequest("carol", asset_id, -(10**400), "AAAA")
        with pytest.raises(StaleRequest):
            service.release_secret(request)

    def test_stale_reported_before_ownership(self, service, clock, keypairs, asset_id):
        clock.now = NOW + 3600
        with pytest.raises(StaleRequest):
            service.release_secret(proof(keypairs, "dave", asset_id))

    def test_unknown_asset_is_not_owner(self, service, keypairs, asset_id):
        with pytest.raises(NotOwner):
            service.release_secret(proof(keypairs, "carol", 999))

    def test_unknown_identity(self, service, keypairs, asset_id):
        request = OwnershipProofRequest("stranger", asset_id, NOW, proof(keypairs, "carol", asset_id).signature)
        with pytest.raises(InvalidSignature):
            service.release_secret(request)

    def test_denials_share_base_class(self, service, keypairs, asset_id):
        with pytest.raises(AccessDenied):
            service.release_secret(proof(keypairs, "dave", asset_id))

    def test_listed_unit_no_longer_grants_access(self, service, ledger, keypairs, asset_id):
        ledger.list_for_resale("carol", asset_id, 500)
        with pytest.raises(NotOwner):
            service.release_secret(proof(keypairs, "carol", asset_id))

    def test_access_follows_resale(self, service, ledger, keypairs, asset_id):
        listing_id = ledger.list_for_resale("carol", asset_id, 500)
        ledger.buy_resale("dave", listing_id, 500)

        assert service.release_secret(proof(keypairs, "dave", asset_id))
        with pytest.raises(NotOwner):
            service.release_secret(proof(keypairs, "carol", asset_id))

    def test_denial_logged(self, service, keypairs, asset_id, caplog):
        with caplog.at_level(logging.WARNING, logger="artledger.access"):
            with pytest.raises(NotOwner):
                service.release_secret(proof(keypairs, "dave", asset_id))
        assert "NotOwner" in caplog.text


class TestDanglingAsset:
    """An owned asset with no secret is an integrity fault."""

    @pytest.fixture
    def dangling_id(self, ledger):
        asset_id = ledger.create_asset("alice", "c", "m", 100, 0, [("alice", 10000)])
        ledger.purchase("carol", asset_id, 100)
        return asset_id

    def test_raises_integrity_fault(self, service, keypairs, dangling_id):
        with pytest.raises(IntegrityFault):
            service.release_secret(proof(keypairs, "carol", dangling_id))

    def test_catchable_as_secret_not_found(self, service, keypairs, dangling_id):
        with pytest.raises(SecretNotFound) as exc_info:
            service.release_secret(proof(keypairs, "carol", dangling_id))
        assert isinstance(exc_info.value, DanglingAsset)
        assert exc_info.value.code == "SecretNotFound"

    def test_logged_to_integrity_channel(self, service, keypairs, dangling_id, caplog):
        with caplog.at_level(logging.ERROR, logger="artledger.access.integrity"):
            with pytest.raises(DanglingAsset):
                service.release_secret(proof(keypairs, "carol", dangling_id))

        records = [r for r in caplog.records if r.name == "artledger.access.integrity"]
        assert len(records) == 1
        assert str(dangling_id) in records[0].getMessage()

    def test_non_owner_still_denied(self, service, keypairs, dangling_id):
        with pytest.raises(NotOwner):
            service.release_secret(proof(keypairs, "dave", dangling_id))


class TestOwnershipProofRequest:
    """Test request parsing."""

    def test_from_dict(self, keypairs):
        request = proof(keypairs, "carol", 4)
        assert OwnershipProofRequest.from_dict(request.to_dict()) == request

    def test_message(self):
        request = OwnershipProofRequest("carol", 4, 123, "sig")
        assert request.message == "prove-ownership:4:123"

    @pytest.mark.parametrize("body", [
        {"identity": "carol", "asset_id": 1, "timestamp": 1},
        {"identity": "", "asset_id": 1, "timestamp": 1, "signature": "s"},
        {"identity": "carol", "asset_id": "1", "timestamp": 1, "signature": "s"},
        {"identity": "carol", "asset_id": 1, "timestamp": True, "signature": "s"},
        {"identity": "carol", "asset_id": 1, "timestamp": 1, "signature": 5},
        ["not", "an", "object"],
    ])
    def test_malformed(self, body):
        with pytest.raises(ValidationError):
            OwnershipProofRequest.from_dict(body)
