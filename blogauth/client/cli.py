"""
blogauth-admin: command-line admin key management.

Examples:
  blogauth-admin setup admin@example.com          # generate + register first key
  blogauth-admin login admin@example.com          # print a session token
  blogauth-admin rotate admin@example.com         # replace the key (signed by the old one)
  blogauth-admin export > backup.pem              # back up the private key
  blogauth-admin import backup.pem                # restore on a new machine
  blogauth-admin status
"""
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from blogauth.client.api_client import API_BASE_URL, AdminAuthClient, AdminAuthClientError
from blogauth.client.key_provider import KeyPairProvider, KeyProviderError
from blogauth.client.keystore import FileKeyStore, KeychainKeyStore, KeyStoreError

logger = logging.getLogger(__name__)

DEFAULT_KEY_DIR = os.getenv("BLOGAUTH_KEY_DIR", "~/.blogauth")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blogauth-admin",
        description="Manage the blog admin key and log in with it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:", 1)[1] if __doc__ else None,
    )
    parser.add_argument(
        "--server",
        default=API_BASE_URL,
        help=f"API base URL (default: {API_BASE_URL}, env BLOGAUTH_API_URL)",
    )
    store = parser.add_mutually_exclusive_group()
    store.add_argument(
        "--key-dir",
        default=DEFAULT_KEY_DIR,
        help=f"Directory holding the private key file (default: {DEFAULT_KEY_DIR})",
    )
    store.add_argument(
        "--keychain",
        action="store_true",
        help="Keep the private key in the OS keychain instead of a file",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("setup", help="Generate a key pair and register the public key")
    p.add_argument("email")
    p.add_argument("--force", action="store_true", help="Overwrite an existing local key")

    p = sub.add_parser("login", help="Authenticate and print the session token")
    p.add_argument("email")

    p = sub.add_parser("rotate", help="Replace the registered key")
    p.add_argument("email")

    p = sub.add_parser("export", help="Write the private key PEM (backup)")
    p.add_argument("--output", "-o", help="File to write (default: stdout)")

    p = sub.add_parser("import", help="Replace the local private key from a PEM backup")
    p.add_argument("path", help="PEM file, or - for stdin")

    sub.add_parser("status", help="Show whether a local key exists")
    return parser


def build_provider(args) -> KeyPairProvider:
    store = KeychainKeyStore() if args.keychain else FileKeyStore(args.key_dir)
    return KeyPairProvider(store)


def run(args, provider: KeyPairProvider, client_factory=None) -> int:
    """Execute a parsed command. Returns the process exit code."""
    client_factory = client_factory or (lambda: AdminAuthClient(base_url=args.server, provider=provider))

    if args.command == "status":
        if provider.has_private_key():
            print("Local key: present")
            print(provider.public_key_pem(), end="")
        else:
            print("Local key: none (run 'blogauth-admin setup <email>')")
        return 0

    if args.command == "export":
        pem = provider.export_private_key()
        if not pem:
            print("No private key to export", file=sys.stderr)
            return 1
        if args.output:
            out = Path(args.output).expanduser()
            out.write_text(pem, encoding="ascii")
            os.chmod(out, 0o600)  # Owner read/write only
            print(f"Private key written to {out}", file=sys.stderr)
        else:
            sys.stdout.write(pem)
        return 0

    if args.command == "import":
        pem = sys.stdin.read() if args.path == "-" else Path(args.path).expanduser().read_text(encoding="ascii")
        provider.import_private_key(pem)
        print("Private key imported")
        return 0

    if args.command == "setup" and provider.has_private_key() and not args.force:
        print("A local key already exists; use 'rotate' or pass --force", file=sys.stderr)
        return 1

    with client_factory() as client:
        if args.command == "setup":
            client.setup_keys(args.email)
            print("Key pair generated and public key registered")
            print("Back up your private key with 'blogauth-admin export'")
        elif args.command == "login":
            session = client.login(args.email)
            print(session.token)
        elif args.command == "rotate":
            client.rotate_keys(args.email)
            print("Key rotated; back up the new private key with 'blogauth-admin export'")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        return run(args, build_provider(args))
    except AdminAuthClientError as e:
        print(f"Error: {e.message} [{e.kind}]", file=sys.stderr)
        return 2
    except (KeyProviderError, KeyStoreError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
