# artledger/config.py
"""
Configuration for the ledger, key store and access service.

Loaded from YAML:

    state_dir: /var/lib/artledger
    platform_identity: platform
    platform_fee_bps: 1000
    resale_royalty_bps: 3000
    max_payees: 16
    freshness_window: 300
    clock_skew: 30
    server:
      host: 127.0.0.1
      port: 8080
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict

import yaml

BPS_DENOMINATOR = 10000


@dataclass
class LedgerConfig:
    """
    Ledger and service settings.

    Attributes:
        state_dir: Directory holding ledger.json, keys/ and identities/
        platform_identity: Identity allowed to withdraw platform fees
        platform_fee_bps: Platform cut of every sale (1000 = 10%)
        resale_royalty_bps: Payee cut of a resale (3000 = 30%); the seller
            receives whatever remains after platform and payees
        max_payees: Upper bound on the payee list of an asset
        freshness_window: Maximum age in seconds of an ownership proof
        clock_skew: Seconds an ownership proof may be dated in the future
        host: Access server bind address
        port: Access server port
    """
    state_dir: Path = field(default_factory=lambda: Path("./artledger_state"))
    platform_identity: str = "platform"
    platform_fee_bps: int = 1000
    resale_royalty_bps: int = 3000
    max_payees: int = 16
    freshness_window: float = 300.0
    clock_skew: float = 30.0
    host: str = "127.0.0.1"
    port: int = 8080

    def __post_init__(self):
        self.state_dir = Path(self.state_dir)
        self.validate()

    def validate(self):
        """Raise ValueError if the settings are inconsistent."""
        for name in ("platform_fee_bps", "resale_royalty_bps"):
            value = getattr(self, name)
            if not 0 <= value <= BPS_DENOMINATOR:
                raise ValueError(f"{name} must be between 0 and {BPS_DENOMINATOR}, got {value}")
        if self.platform_fee_bps + self.resale_royalty_bps > BPS_DENOMINATOR:
            raise ValueError("platform_fee_bps + resale_royalty_bps exceeds 100%")
        if self.max_payees < 1:
            raise ValueError("max_payees must be at least 1")
        if self.freshness_window <= 0:
            raise ValueError("freshness_window must be positive")
        if self.clock_skew < 0:
            raise ValueError("clock_skew must not be negative")

    @property
    def seller_bps(self) -> int:
        """Seller share of a resale, in basis points."""
        return BPS_DENOMINATOR - self.platform_fee_bps - self.resale_royalty_bps

    @property
    def ledger_path(self) -> Path:
        return self.state_dir / "ledger.json"

    @property
    def keys_dir(self) -> Path:
        return self.state_dir / "keys"

    @property
    def identities_dir(self) -> Path:
        return self.state_dir / "identities"

    @property
    def content_dir(self) -> Path:
        return self.state_dir / "content"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state_dir": str(self.state_dir),
            "platform_identity": self.platform_identity,
            "platform_fee_bps": self.platform_fee_bps,
            "resale_royalty_bps": self.resale_royalty_bps,
            "max_payees": self.max_payees,
            "freshness_window": self.freshness_window,
            "clock_skew": self.clock_skew,
            "server": {"host": self.host, "port": self.port},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerConfig":
        data = dict(data or {})
        server = data.pop("server", None) or {}
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        if "host" in server:
            data.setdefault("host", server["host"])
        if "port" in server:
            data.setdefault("port", int(server["port"]))
        return cls(**data)

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "LedgerConfig":
        """Parse config from a YAML string."""
        return cls.from_dict(yaml.safe_load(yaml_content))

    @classmethod
    def from_file(cls, path: Path | str) -> "LedgerConfig":
        """Load config from a YAML file."""
        with open(path, "r") as f:
            return cls.from_yaml(f.read())
