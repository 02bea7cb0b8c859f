#!/usr/bin/env python
"""
Encrypt or decrypt files with the Trusty container format.

Runs entirely on the client: the password never leaves this machine and
the server only ever receives the encrypted container.

Usage:
    PYTHONPATH=.
    python scripts/container_tool.py encrypt notes.txt notes.txt.enc
    python scripts/container_tool.py decrypt notes.txt.enc notes.txt
    TRUSTY_PASSWORD=... python scripts/container_tool.py encrypt a.pdf a.enc --password-env TRUSTY_PASSWORD
"""

import argparse
import getpass
import os
import sys
from pathlib import Path

from core import container
from core.exceptions import DecryptionFailed, MalformedContainer
from core.logger import logger


def read_password(env_var: str | None, confirm: bool) -> str:
    """Read the password from an environment variable or prompt for it"""
    if env_var:
        password = os.environ.get(env_var)
        if not password:
            raise SystemExit(f"Environment variable {env_var} is not set")
        return password

    password = getpass.getpass("Password: ")
    if confirm and getpass.getpass("Confirm password: ") != password:
        raise SystemExit("Passwords do not match")
    return password


def encrypt_file(source: Path, destination: Path, password: str) -> int:
    """Encrypt source into destination, returning the container size"""
    data = container.encode(source.read_bytes(), password)
    destination.write_bytes(data)
    return len(data)


def decrypt_file(source: Path, destination: Path, password: str) -> int:
    """Decrypt source into destination, returning the plaintext size"""
    data = container.decode(source.read_bytes(), password)
    destination.write_bytes(data)
    return len(data)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Encrypt or decrypt files in the Trusty container format",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Encrypt a file before uploading it
  python scripts/container_tool.py encrypt report.pdf report.pdf.enc

  # Decrypt a downloaded container
  python scripts/container_tool.py decrypt report.pdf.enc report.pdf
        """,
    )
    parser.add_argument("command", choices=["encrypt", "decrypt"])
    parser.add_argument("source", type=Path, help="Input file")
    parser.add_argument("destination", type=Path, help="Output file")
    parser.add_argument(
        "--password-env",
        help="Read the password from this environment variable instead of prompting",
    )

    args = parser.parse_args(argv)

    if not args.source.is_file():
        parser.error(f"Input file not found: {args.source}")

    password = read_password(args.password_env, confirm=args.command == "encrypt")

    try:
        if args.command == "encrypt":
            size = encrypt_file(args.source, args.destination, password)
            logger.info(f"Wrote {size} byte container to {args.destination}")
        else:
            size = decrypt_file(args.source, args.destination, password)
            logger.info(f"Wrote {size} bytes of plaintext to {args.destination}")
    except (MalformedContainer, DecryptionFailed) as e:
        logger.error(f"Failed to decrypt {args.source}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
