# artledger/client.py
"""
Client SDK for the key-release server.

Usage:
    identities = IdentityStore("~/.artledger/identities")
    client = AccessClient("http://localhost:8080")

    secret = client.request_secret(identities.get("carol"), asset_id=1)
    plaintext = decrypt_content(ciphertext, secret)
"""

import json
from typing import List
from urllib.parse import quote
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from .access import OwnershipProofRequest
from .errors import AccessDenied, NotFoundError
from .identity import Identity
from .keystore import DecryptionSecret
from .ledger import Asset, Listing


class AccessClient:
    """
    Client for the key-release server.

    Args:
        base_url: Server URL (e.g., "http://localhost:8080")
        timeout: Request timeout in seconds
    """

    def __init__(self, base_url: str = "http://localhost:8080", timeout: float = 30):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _request(self, method: str, path: str, data: dict = None) -> dict:
        """Make HTTP request to server."""
        url = f"{self.base_url}{path}"

        if data is not None:
            body = json.dumps(data).encode()
            headers = {"Content-Type": "application/json"}
        else:
            body = None
            headers = {}

        req = Request(url, data=body, headers=headers, method=method)

        try:
            with urlopen(req, timeout=self.timeout) as response:
                return json.loads(response.read().decode())
        except HTTPError as e:
            error_body = e.read().decode()
            try:
                message = json.loads(error_body).get("error", str(e))
            except json.JSONDecodeError:
                message = f"HTTP {e.code}: {error_body}"
            if e.code == 403:
                raise AccessDenied(message)
            if e.code == 404:
                raise NotFoundError(message)
            raise RuntimeError(message)
        except URLError as e:
            raise ConnectionError(f"Failed to connect to server: {e}")

    def health(self) -> bool:
        """Check if server is healthy."""
        try:
            result = self._request("GET", "/health")
            return result.get("status") == "ok"
        except (ConnectionError, RuntimeError):
            return False

    def request_secret(self, identity: Identity, asset_id: int, timestamp: int = None) -> DecryptionSecret:
        """
        Sign a fresh ownership proof and exchange it for the asset's secret.

        Args:
            identity: Holder, with private key
            asset_id: Asset to unlock
            timestamp: Proof time (defaults to now)

        Raises:
            AccessDenied: proof rejected (the reason is not disclosed)
        """
        proof = OwnershipProofRequest.create(identity, asset_id, timestamp)
        data = self._request("POST", "/access", proof.to_dict())
        return DecryptionSecret.from_dict(data)

    def get_asset(self, asset_id: int) -> Asset:
        return Asset.from_dict(self._request("GET", f"/assets/{asset_id}"))

    def list_assets(self) -> List[Asset]:
        data = self._request("GET", "/assets")
        return [Asset.from_dict(a) for a in data.get("assets", [])]

    def get_listing(self, listing_id: int) -> Listing:
        return Listing.from_dict(self._request("GET", f"/listings/{listing_id}"))

    def balance_of(self, identity: str, asset_id: int) -> int:
        return self._request("GET", f"/balance/{quote(identity, safe='')}/{asset_id}")["balance"]


__all__ = ["AccessClient"]
