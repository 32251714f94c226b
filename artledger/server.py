# artledger/server.py
"""
HTTP server for the key-release service.

Endpoints:
    POST /access                         - Release a secret for a signed ownership proof
    GET  /assets                         - List assets
    GET  /assets/:id                     - Get an asset
    GET  /listings/:id                   - Get a listing
    GET  /balance/:identity/:asset_id    - Spendable balance
    GET  /health                         - Liveness

Every rejected ownership proof gets the same 403 response; the reason is
only logged.
"""

import json
import logging
import threading
from dataclasses import replace
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional
from urllib.parse import unquote, urlparse

from .access import AccessService, OwnershipProofRequest
from .config import LedgerConfig
from .errors import AccessDenied, IntegrityFault, NotFoundError, ValidationError
from .identity import IdentityStore, SignatureVerifier
from .keystore import KeyStore
from .ledger import Ledger

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 64 * 1024


def _parse_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        return None


class AccessServer:
    """
    HTTP front end for an AccessService.

    Usage:
        server = AccessServer.from_config(LedgerConfig(state_dir="/tmp/artledger"))
        server.start()  # Blocking
    """

    def __init__(self, service: AccessService, host: str = "127.0.0.1", port: int = 8080):
        self.service = service
        self.ledger = service.ledger
        self.host = host
        self.port = port
        self._httpd: Optional[ThreadingHTTPServer] = None

    @classmethod
    def from_config(cls, config: LedgerConfig) -> "AccessServer":
        """Build ledger, key store, identities and service from a config."""
        ledger = Ledger(config.state_dir, config=config)
        keystore = KeyStore(config.keys_dir)
        verifier = SignatureVerifier(IdentityStore(config.identities_dir))
        service = AccessService(ledger, keystore, verifier, config=config)
        return cls(service, host=config.host, port=config.port)

    def refresh(self):
        """Pick up state written by other processes (e.g. the CLI)."""
        self.ledger.reload_if_changed()
        self.service.keystore.reload_if_changed()
        self.service.verifier.identities.reload_if_changed()

    def _create_handler(server_instance):
        """Create request handler with access to server instance."""

        class RequestHandler(BaseHTTPRequestHandler):
            server_ref = server_instance

            def log_message(self, format, *args):
                logger.debug(format % args)

            def _send_json(self, data: Any, status: int = 200):
                body = json.dumps(data).encode()
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.send_header("Cache-Control", "no-store")
                self.end_headers()
                self.wfile.write(body)

            def _send_error(self, message: str, status: int = 400):
                self._send_json({"error": message}, status)

            def _refresh(self) -> bool:
                """Reload shared state; on failure answer 500 and return False."""
                try:
                    self.server_ref.refresh()
                except Exception:
                    logger.exception("Failed to reload state")
                    self._send_error("internal error", 500)
                    return False
                return True

            def _content_length(self) -> Optional[int]:
                """Declared body size, or None after answering a bad header."""
                try:
                    content_length = int(self.headers.get("Content-Length", 0))
                except ValueError:
                    self._send_error("Invalid Content-Length")
                    return None
                if content_length < 0:
                    self._send_error("Invalid Content-Length")
                    return None
                if content_length > MAX_BODY_BYTES:
                    self._send_error("Request too large", 413)
                    return None
                return content_length

            def do_GET(self):
                if not self._refresh():
                    return
                ledger = self.server_ref.ledger
                parts = [unquote(p) for p in urlparse(self.path).path.split("/") if p]

                try:
                    if parts == ["health"]:
                        self._send_json({"status": "ok"})

                    elif parts == ["assets"]:
                        self._send_json({"assets": [a.to_dict() for a in ledger.list_assets()]})

                    elif len(parts) == 2 and parts[0] == "assets":
                        asset_id = _parse_int(parts[1])
                        if asset_id is None:
                            self._send_error("Invalid asset id")
                            return
                        self._send_json(ledger.get_asset(asset_id).to_dict())

                    elif len(parts) == 2 and parts[0] == "listings":
                        listing_id = _parse_int(parts[1])
                        if listing_id is None:
                            self._send_error("Invalid listing id")
                            return
                        self._send_json(ledger.get_listing(listing_id).to_dict())

                    elif len(parts) == 3 and parts[0] == "balance":
                        asset_id = _parse_int(parts[2])
                        if asset_id is None:
                            self._send_error("Invalid asset id")
                            return
                        self._send_json({
                            "identity": parts[1],
                            "asset_id": asset_id,
                            "balance": ledger.balance_of(parts[1], asset_id),
                        })

                    else:
                        self._send_error("Not found", 404)

                except NotFoundError as e:
                    self._send_error(e.message, 404)

            def do_POST(self):
                if self.path != "/access":
                    self._send_error("Not found", 404)
                    return
                content_length = self._content_length()
                if content_length is None:
                    return
                body = self.rfile.read(content_length)
                if not self._refresh():
                    return

                try:
                    request = OwnershipProofRequest.from_dict(json.loads(body.decode("utf-8")))
                    secret = self.server_ref.service.release_secret(request)
                except json.JSONDecodeError as e:
                    self._send_error(f"Invalid JSON: {e}")
                    return
                except UnicodeDecodeError:
                    self._send_error("Request body is not UTF-8")
                    return
                except ValidationError as e:
                    self._send_error(e.message)
                    return
                except AccessDenied:
                    self._send_error("access denied", 403)
                    return
                except IntegrityFault:
                    self._send_error("internal error", 500)
                    return
                except Exception:
                    logger.exception("Access request failed")
                    self._send_error("internal error", 500)
                    return

                self._send_json(secret.to_dict())

        return RequestHandler

    def bind(self) -> ThreadingHTTPServer:
        """Bind the listening socket. Port 0 picks a free port."""
        if self._httpd is None:
            handler = self._create_handler()
            self._httpd = ThreadingHTTPServer((self.host, self.port), handler)
            self.port = self._httpd.server_address[1]
        return self._httpd

    def start(self):
        """Start the HTTP server (blocking)."""
        httpd = self.bind()
        logger.info(f"Access server starting on {self.host}:{self.port}")
        print(f"Access server running on http://{self.host}:{self.port}")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            print("\nShutting down...")
            httpd.server_close()

    def start_background(self) -> threading.Thread:
        """Start the server in a background thread."""
        httpd = self.bind()
        thread = threading.Thread(target=httpd.serve_forever)
        thread.daemon = True
        thread.start()
        logger.info(f"Access server running in background on {self.host}:{self.port}")
        return thread

    def shutdown(self):
        """Stop a running server and close its socket."""
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None


def main():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="artledger key-release server")
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--host", help="Host to bind to")
    parser.add_argument("--port", type=int, help="Port to bind to")
    parser.add_argument("--state-dir", help="State directory")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config = LedgerConfig.from_file(args.config) if args.config else LedgerConfig()
    overrides = {
        "host": args.host,
        "port": args.port,
        "state_dir": args.state_dir,
    }
    config = replace(config, **{k: v for k, v in overrides.items() if v is not None})

    server = AccessServer.from_config(config)
    server.start()


if __name__ == "__main__":
    main()
