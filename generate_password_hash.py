#!/usr/bin/env python3
"""
Produce an ADMIN_PASS_HASH value for .env, or check a password against one.

    python generate_password_hash.py                  pbkdf2 (default)
    python generate_password_hash.py --bcrypt         bcrypt
    python generate_password_hash.py --verify HASH    exit 0 on match, 1 otherwise
"""
import argparse
import getpass
import sys
from pathlib import Path

# Runnable from a checkout without installing the package
sys.path.insert(0, str(Path(__file__).parent))

from app.utils.auth import hash_password, hash_password_pbkdf2, verify_password


def read_new_password():
    """Prompt twice; None when the entry is empty or the two differ."""
    first = getpass.getpass("New admin password: ")
    if not first:
        print("Empty password, nothing generated.", file=sys.stderr)
        return None
    if getpass.getpass("Repeat it: ") != first:
        print("The two entries differ, nothing generated.", file=sys.stderr)
        return None
    return first


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--bcrypt", action="store_true", help="emit a bcrypt hash instead of pbkdf2")
    parser.add_argument("--verify", metavar="HASH", help="check a password against HASH")
    args = parser.parse_args(argv)

    if args.verify:
        matched = verify_password(getpass.getpass("Password to check: "), args.verify)
        print("match" if matched else "no match")
        return 0 if matched else 1

    password = read_new_password()
    if password is None:
        return 1

    hashed = hash_password(password) if args.bcrypt else hash_password_pbkdf2(password)
    print("Add this line to .env (keep it out of version control):")
    print(f"ADMIN_PASS_HASH={hashed}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
