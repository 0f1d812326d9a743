from __future__ import annotations

import hashlib
import hmac

import bcrypt

BCRYPT_ROUNDS = 12
BCRYPT_MAX_BYTES = 72
PBKDF2_PREFIX = "pbkdf2$"


def _normalize_password_for_bcrypt(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes; bcrypt>=5 raises instead of truncating
    return (password or "").encode("utf-8")[:BCRYPT_MAX_BYTES]


def password_looks_hashed(password: str) -> bool:
    return password.startswith((PBKDF2_PREFIX, "$2a$", "$2b$", "$2y$"))


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(_normalize_password_for_bcrypt(password), salt).decode("utf-8")


def _verify_pbkdf2(password: str, password_hash: str) -> bool:
    try:
        _, iter_str, salt_hex, digest_hex = password_hash.split("$", 3)
        iterations = int(iter_str)
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
    except ValueError:
        return False
    computed = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return hmac.compare_digest(computed, expected)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False

    if password_hash.startswith(PBKDF2_PREFIX):
        return _verify_pbkdf2(password, password_hash)

    try:
        return bcrypt.checkpw(_normalize_password_for_bcrypt(password), password_hash.encode("utf-8"))
    except ValueError:
        return False
