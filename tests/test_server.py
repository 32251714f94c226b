# tests/test_server.py
"""Tests for the key-release HTTP server and its client."""

import http.client
import json
import time
from urllib.error import HTTPError
from urllib.request import Request, urlopen

import pytest

from artledger import AccessService, KeyStore, Ledger, OwnershipProofRequest, SignatureVerifier
from artledger.client import AccessClient
from artledger.content import generate_secret
from artledger.errors import AccessDenied, NotFoundError
from artledger.server import AccessServer


@pytest.fixture
def ledger(temp_dir, config):
    return Ledger(temp_dir / "ledger", config=config)


@pytest.fixture
def keystore(temp_dir):
    return KeyStore(temp_dir / "keys")


@pytest.fixture
def server(ledger, keystore, identities, config):
    """Run a server on a free port for the duration of a test."""
    service = AccessService(ledger, keystore, SignatureVerifier(identities), config=config)
    server = AccessServer(service, host="127.0.0.1", port=0)
    server.start_background()
    yield server
    server.shutdown()


@pytest.fixture
def client(server):
    return AccessClient(f"http://127.0.0.1:{server.port}", timeout=10)


@pytest.fixture
def asset_id(ledger, keystore):
    """An asset with a secret, one unit held by carol."""
    secret = generate_secret()
    asset_id = ledger.create_asset(
        "alice", "c", "m", 1000, 10, [("alice", 10000)],
        before_commit=lambda new_id: keystore.put(new_id, secret),
    )
    ledger.purchase("carol", asset_id, 1000)
    return asset_id


def post_with_length(server, content_length: str):
    """POST /access with a hand-written Content-Length and no body."""
    conn = http.client.HTTPConnection("127.0.0.1", server.port, timeout=5)
    try:
        conn.putrequest("POST", "/access")
        conn.putheader("Content-Length", content_length)
        conn.endheaders()
        response = conn.getresponse()
        return response.status, json.loads(response.read())
    finally:
        conn.close()


def post_raw(server, body: bytes):
    """POST a raw body to /access, return (status, parsed body)."""
    request = Request(
        f"http://127.0.0.1:{server.port}/access",
        data=body,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with urlopen(request, timeout=10) as response:
            return response.status, json.loads(response.read())
    except HTTPError as e:
        return e.code, json.loads(e.read())


class TestAccessEndpoint:
    """Test POST /access."""

    def test_health(self, client):
        assert client.health()

    def test_owner_receives_secret(self, client, keystore, keypairs, asset_id):
        secret = client.request_secret(keypairs["carol"], asset_id)
        assert secret == keystore.get(asset_id)

    def test_non_owner_denied(self, client, keypairs, asset_id):
        with pytest.raises(AccessDenied) as exc_info:
            client.request_secret(keypairs["dave"], asset_id)
        assert exc_info.value.message == "access denied"

    def test_denials_are_indistinguishable(self, server, keypairs, asset_id):
        now = int(time.time())
        stale = OwnershipProofRequest.create(keypairs["carol"], asset_id, now - 3600)
        not_owner = OwnershipProofRequest.create(keypairs["dave"], asset_id, now)
        forged = OwnershipProofRequest("carol", asset_id, now, not_owner.signature)

        responses = [
            post_raw(server, json.dumps(r.to_dict()).encode())
            for r in (stale, not_owner, forged)
        ]
        assert responses == [(403, {"error": "access denied"})] * 3

    def test_malformed_json(self, server):
        status, body = post_raw(server, b"{not json")
        assert status == 400
        assert "error" in body

    def test_missing_fields(self, server):
        status, _ = post_raw(server, json.dumps({"identity": "carol"}).encode())
        assert status == 400

    def test_negative_content_length(self, server):
        assert post_with_length(server, "-1") == (400, {"error": "Invalid Content-Length"})

    def test_non_numeric_content_length(self, server):
        assert post_with_length(server, "lots") == (400, {"error": "Invalid Content-Length"})

    def test_oversized_content_length(self, server):
        status, _ = post_with_length(server, str(10**9))
        assert status == 413

    def test_body_not_utf8(self, server):
        status, body = post_raw(server, b"\xff\xfe{}")
        assert status == 400
        assert "UTF-8" in body["error"]

    def test_oversized_timestamp_denied(self, server, asset_id):
        body = {"identity": "carol", "asset_id": asset_id, "timestamp": 10**400, "signature": "AAAA"}
        assert post_raw(server, json.dumps(body).encode()) == (403, {"error": "access denied"})

    def test_unreadable_state_is_internal_error(self, server, temp_dir, keypairs, asset_id):
        (temp_dir / "ledger" / "ledger.json").write_text("{corrupt")

        proof = OwnershipProofRequest.create(keypairs["carol"], asset_id)
        assert post_raw(server, json.dumps(proof.to_dict()).encode()) == (500, {"error": "internal error"})
        with pytest.raises(RuntimeError, match="internal error"):
            AccessClient(f"http://127.0.0.1:{server.port}", timeout=10).list_assets()

    def test_dangling_asset_is_internal_error(self, client, ledger, keypairs):
        asset_id = ledger.create_asset("alice", "c", "m", 10, 0, [("alice", 10000)])
        ledger.purchase("carol", asset_id, 10)

        with pytest.raises(RuntimeError, match="internal error"):
            client.request_secret(keypairs["carol"], asset_id)


class TestReadEndpoints:
    """Test the ledger read endpoints."""

    def test_get_asset(self, client, asset_id):
        asset = client.get_asset(asset_id)
        assert asset.creator == "alice"
        assert asset.minted_supply == 1

    def test_list_assets(self, client, asset_id):
        assert [a.asset_id for a in client.list_assets()] == [asset_id]

    def test_unknown_asset(self, client):
        with pytest.raises(NotFoundError):
            client.get_asset(404)

    def test_balance(self, client, asset_id):
        assert client.balance_of("carol", asset_id) == 1
        assert client.balance_of("dave", asset_id) == 0

    def test_listing(self, client, ledger, asset_id):
        listing_id = ledger.list_for_resale("carol", asset_id, 700)
        listing = client.get_listing(listing_id)
        assert listing.ask_price == 700
        assert listing.active

    def test_sees_writes_from_other_ledger(self, client, temp_dir, config, asset_id):
        other = Ledger(temp_dir / "ledger", config=config)
        other.purchase("dave", asset_id, 1000)

        assert client.balance_of("dave", asset_id) == 1


class TestClientConnection:
    """Test client behaviour without a server."""

    def test_health_when_down(self):
        assert not AccessClient("http://127.0.0.1:9", timeout=1).health()

    def test_connection_error(self):
        with pytest.raises(ConnectionError):
            AccessClient("http://127.0.0.1:9", timeout=1).list_assets()
