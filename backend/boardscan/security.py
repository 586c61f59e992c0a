"""
BoardScan Backend — Password Hashing
======================================

bcrypt helpers for admin-created accounts and the bootstrap admin. Request
authentication itself happens upstream (see dependencies.get_current_user).

Nothing in this service checks passwords at request time. verify_password is
the counterpart to hash_password for the upstream login service that reads the
stored password_hash column. It is kept here so the hash format has a single
owner.
"""

import bcrypt

BCRYPT_ROUNDS = 12


def hash_password(plain_password: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Check a password against a stored hash.

    A malformed stored hash verifies as False instead of raising.
    """
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False
