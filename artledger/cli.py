#!/usr/bin/env python3
"""
artledger CLI

Local administration of a ledger state directory:
  artledger identity create <name>         - Create an identity with a key pair
  artledger identity list                  - List identities
  artledger publish --as <creator> <file>  - Encrypt, store and publish content
  artledger buy --as <buyer> <asset_id>    - Primary purchase
  artledger list --as <seller> <asset_id> <price>
  artledger cancel --as <seller> <listing_id>
  artledger buy-listing --as <buyer> <listing_id>
  artledger withdraw --as <platform>
  artledger deactivate --as <creator> <asset_id>
  artledger show <asset_id> | show --listing <listing_id>
  artledger balance <identity>
  artledger access --as <holder> <asset_id> [-o <file>] [--server <url>]
  artledger serve

Usage:
  artledger publish --as alice art.png --price 1000 --supply 10 \\
      --payee alice:6000 --payee bob:4000
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Tuple

from .access import AccessService, OwnershipProofRequest
from .config import LedgerConfig
from .content import ContentStore, decrypt_content
from .errors import LedgerError
from .identity import Identity, IdentityStore, SignatureVerifier
from .keystore import KeyStore
from .ledger import Ledger
from .publishing import Publisher


def parse_payee(payee_str: str) -> Tuple[str, int]:
    """
    Parse payee specification: identity:share_bps

    Returns (identity, share_bps)
    """
    if ":" not in payee_str:
        raise ValueError(f"Invalid payee format: {payee_str}. Expected identity:share_bps")
    identity, share = payee_str.rsplit(":", 1)
    try:
        return identity, int(share)
    except ValueError:
        raise ValueError(f"Invalid share in {payee_str}: {share!r} is not an integer")


def parse_payees(payee_list: List[str]) -> List[Tuple[str, int]]:
    """Parse list of payee specifications."""
    return [parse_payee(p) for p in payee_list]


def load_config(args) -> LedgerConfig:
    """Config file (if any) overridden by command-line flags."""
    config = LedgerConfig.from_file(args.config) if args.config else LedgerConfig()
    if args.state_dir:
        config = replace(config, state_dir=Path(args.state_dir))
    return config


def _ledger(config: LedgerConfig) -> Ledger:
    return Ledger(config.state_dir, config=config)


def _identity(config: LedgerConfig, username: str) -> Identity:
    identity = IdentityStore(config.identities_dir).get(username)
    if identity is None:
        raise ValueError(f"Unknown identity: {username}")
    return identity


def cmd_identity(args, config: LedgerConfig):
    """Create or list identities."""
    store = IdentityStore(config.identities_dir)
    if args.identity_command == "create":
        identity = store.create(args.username, args.display_name)
        print(f"Created identity {identity.username}")
    else:
        for identity in store.list():
            marker = "" if identity.can_sign else " (public key only)"
            print(f"{identity.username}\t{identity.display_name}{marker}")


def cmd_publish(args, config: LedgerConfig):
    """Encrypt a file and publish it as a new asset."""
    _identity(config, args.caller)
    path = Path(args.file)
    if not path.exists():
        raise FileNotFoundError(f"Content file not found: {path}")

    metadata = {"title": args.title or path.stem, "filename": path.name}
    if args.description:
        metadata["description"] = args.description

    payees = parse_payees(args.payee) if args.payee else [(args.caller, 10000)]
    publisher = Publisher(
        _ledger(config),
        KeyStore(config.keys_dir),
        ContentStore(config.content_dir),
    )
    published = publisher.publish_content(
        creator=args.caller,
        plaintext=path.read_bytes(),
        metadata=metadata,
        unit_price=args.price,
        max_supply=args.supply,
        payees=payees,
    )
    print(f"Published asset {published.asset_id}")
    print(f"  Content:  {published.content_ref}")
    print(f"  Metadata: {published.metadata_ref}")


def _print_disbursement(disbursement):
    print(f"  Platform fee: {disbursement.platform_fee}")
    for identity, amount in disbursement.payee_amounts:
        print(f"  Royalty to {identity}: {amount}")
    if disbursement.seller is not None:
        print(f"  Seller {disbursement.seller}: {disbursement.seller_amount}")


def cmd_buy(args, config: LedgerConfig):
    """Primary purchase of one unit."""
    ledger = _ledger(config)
    amount = args.amount if args.amount is not None else ledger.get_asset(args.asset_id).unit_price
    disbursement = ledger.purchase(args.caller, args.asset_id, amount)
    print(f"{args.caller} bought 1 unit of asset {args.asset_id} for {amount}")
    _print_disbursement(disbursement)


def cmd_list(args, config: LedgerConfig):
    """List one unit for resale."""
    listing_id = _ledger(config).list_for_resale(args.caller, args.asset_id, args.price)
    print(f"Created listing {listing_id}")


def cmd_cancel(args, config: LedgerConfig):
    """Cancel a resale listing."""
    _ledger(config).cancel_listing(args.caller, args.listing_id)
    print(f"Cancelled listing {args.listing_id}")


def cmd_buy_listing(args, config: LedgerConfig):
    """Buy a resale listing."""
    ledger = _ledger(config)
    amount = args.amount if args.amount is not None else ledger.get_listing(args.listing_id).ask_price
    disbursement = ledger.buy_resale(args.caller, args.listing_id, amount)
    print(f"{args.caller} bought listing {args.listing_id} for {amount}")
    _print_disbursement(disbursement)


def cmd_withdraw(args, config: LedgerConfig):
    """Withdraw platform fees."""
    amount = _ledger(config).withdraw(args.caller)
    print(f"Withdrew {amount}")


def cmd_deactivate(args, config: LedgerConfig):
    """Stop primary sales of an asset."""
    _ledger(config).deactivate_asset(args.caller, args.asset_id)
    print(f"Asset {args.asset_id} deactivated")


def cmd_show(args, config: LedgerConfig):
    """Print an asset or listing as JSON."""
    ledger = _ledger(config)
    if args.listing is not None:
        data = ledger.get_listing(args.listing).to_dict()
    elif args.asset_id is not None:
        data = ledger.get_asset(args.asset_id).to_dict()
        data["escrow"] = ledger.escrow_of(args.asset_id)
    else:
        data = {"assets": [a.to_dict() for a in ledger.list_assets()]}
    print(json.dumps(data, indent=2))


def cmd_balance(args, config: LedgerConfig):
    """Print holdings and earnings of an identity."""
    ledger = _ledger(config)
    holdings = ledger.holdings_of(args.identity)
    print(f"{args.identity}:")
    for asset_id, count in sorted(holdings.items()):
        print(f"  Asset {asset_id}: {count} unit(s)")
    if not holdings:
        print("  No units held")
    print(f"  Earnings: {ledger.earnings_of(args.identity)}")
    if args.identity == config.platform_identity:
        print(f"  Platform balance: {ledger.platform_balance()}")


def cmd_access(args, config: LedgerConfig):
    """Prove ownership, obtain the secret and decrypt the content."""
    identity = _identity(config, args.caller)

    if args.server:
        from .client import AccessClient

        client = AccessClient(args.server)
        asset = client.get_asset(args.asset_id)
        secret = client.request_secret(identity, args.asset_id)
    else:
        ledger = _ledger(config)
        service = AccessService(
            ledger,
            KeyStore(config.keys_dir),
            SignatureVerifier(IdentityStore(config.identities_dir)),
            config=config,
        )
        asset = ledger.get_asset(args.asset_id)
        secret = service.release_secret(OwnershipProofRequest.create(identity, args.asset_id))

    plaintext = decrypt_content(ContentStore(config.content_dir).get(asset.content_ref), secret)
    output = Path(args.output) if args.output else Path(f"asset_{args.asset_id}.bin")
    output.write_bytes(plaintext)
    print(f"Decrypted asset {args.asset_id} to {output} ({len(plaintext)} bytes)")


def cmd_serve(args, config: LedgerConfig):
    """Run the key-release server."""
    from .server import AccessServer

    overrides = {"host": args.host, "port": args.port}
    config = replace(config, **{k: v for k, v in overrides.items() if v is not None})
    AccessServer.from_config(config).start()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="artledger",
        description="artledger - royalty-splitting asset ledger with ownership-gated decryption",
    )
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--state-dir", help="State directory (overrides config)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # identity commands
    identity_parser = subparsers.add_parser("identity", help="Manage identities")
    identity_sub = identity_parser.add_subparsers(dest="identity_command")
    create_parser = identity_sub.add_parser("create", help="Create an identity")
    create_parser.add_argument("username", help="Identity name")
    create_parser.add_argument("--display-name", help="Human-readable name")
    identity_sub.add_parser("list", help="List identities")
    identity_parser.set_defaults(func=cmd_identity)

    # publish command
    publish_parser = subparsers.add_parser("publish", help="Encrypt and publish content")
    publish_parser.add_argument("--as", dest="caller", required=True, help="Creator identity")
    publish_parser.add_argument("file", help="Content file")
    publish_parser.add_argument("--price", type=int, required=True, help="Unit price")
    publish_parser.add_argument("--supply", type=int, default=0, help="Max supply (0 = unbounded)")
    publish_parser.add_argument("--payee", action="append",
                                help="Payee: identity:share_bps (repeatable; default: creator:10000)")
    publish_parser.add_argument("--title", help="Title (default: file name)")
    publish_parser.add_argument("--description", help="Description")
    publish_parser.set_defaults(func=cmd_publish)

    # buy command
    buy_parser = subparsers.add_parser("buy", help="Buy one unit of an asset")
    buy_parser.add_argument("--as", dest="caller", required=True, help="Buyer identity")
    buy_parser.add_argument("asset_id", type=int)
    buy_parser.add_argument("--amount", type=int, help="Payment (default: unit price)")
    buy_parser.set_defaults(func=cmd_buy)

    # list command
    list_parser = subparsers.add_parser("list", help="List one unit for resale")
    list_parser.add_argument("--as", dest="caller", required=True, help="Seller identity")
    list_parser.add_argument("asset_id", type=int)
    list_parser.add_argument("price", type=int, help="Ask price")
    list_parser.set_defaults(func=cmd_list)

    # cancel command
    cancel_parser = subparsers.add_parser("cancel", help="Cancel a resale listing")
    cancel_parser.add_argument("--as", dest="caller", required=True, help="Seller identity")
    cancel_parser.add_argument("listing_id", type=int)
    cancel_parser.set_defaults(func=cmd_cancel)

    # buy-listing command
    buy_listing_parser = subparsers.add_parser("buy-listing", help="Buy a resale listing")
    buy_listing_parser.add_argument("--as", dest="caller", required=True, help="Buyer identity")
    buy_listing_parser.add_argument("listing_id", type=int)
    buy_listing_parser.add_argument("--amount", type=int, help="Payment (default: ask price)")
    buy_listing_parser.set_defaults(func=cmd_buy_listing)

    # withdraw command
    withdraw_parser = subparsers.add_parser("withdraw", help="Withdraw platform fees")
    withdraw_parser.add_argument("--as", dest="caller", required=True, help="Platform identity")
    withdraw_parser.set_defaults(func=cmd_withdraw)

    # deactivate command
    deactivate_parser = subparsers.add_parser("deactivate", help="Stop primary sales of an asset")
    deactivate_parser.add_argument("--as", dest="caller", required=True, help="Creator identity")
    deactivate_parser.add_argument("asset_id", type=int)
    deactivate_parser.set_defaults(func=cmd_deactivate)

    # show command
    show_parser = subparsers.add_parser("show", help="Show assets or a listing")
    show_parser.add_argument("asset_id", type=int, nargs="?")
    show_parser.add_argument("--listing", type=int, help="Listing id")
    show_parser.set_defaults(func=cmd_show)

    # balance command
    balance_parser = subparsers.add_parser("balance", help="Show holdings and earnings")
    balance_parser.add_argument("identity")
    balance_parser.set_defaults(func=cmd_balance)

    # access command
    access_parser = subparsers.add_parser("access", help="Decrypt an owned asset")
    access_parser.add_argument("--as", dest="caller", required=True, help="Holder identity")
    access_parser.add_argument("asset_id", type=int)
    access_parser.add_argument("-o", "--output", help="Output file (default: asset_<id>.bin)")
    access_parser.add_argument("--server", help="Key-release server URL (default: local state)")
    access_parser.set_defaults(func=cmd_access)

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the key-release server")
    serve_parser.add_argument("--host", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, help="Port to bind to")
    serve_parser.set_defaults(func=cmd_serve)

    return parser


def main(argv: List[str] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if not getattr(args, "func", None):
        parser.print_help()
        sys.exit(1)
    if args.command == "identity" and not args.identity_command:
        parser.parse_args(["identity", "--help"])

    try:
        config = load_config(args)
        args.func(args, config)
    except (LedgerError, ValueError, FileNotFoundError, ConnectionError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
