"""Password hashing with scrypt and constant-time verification."""
import hashlib
import hmac
import secrets

PASSWORD_HASH_ALGORITHM = "scrypt"
PASSWORD_SCRYPT_N = 2 ** 14
PASSWORD_SCRYPT_R = 8
PASSWORD_SCRYPT_P = 1
PASSWORD_DIGEST_BYTES = 64
PASSWORD_SALT_BYTES = 16
PASSWORD_HASH_SEPARATOR = "$"
# Bounds on parameters read back from a stored hash.
MAX_SCRYPT_N = 2 ** 20
MAX_SCRYPT_R = 32
MAX_SCRYPT_P = 16


def _derive(plaintext: str, salt: bytes, n: int, r: int, p: int, length: int) -> bytes:
    return hashlib.scrypt(
        plaintext.encode("utf-8"),
        salt=salt,
        n=n,
        r=r,
        p=p,
        maxmem=128 * n * r * p + 1024 * 1024,
        dklen=length,
    )


def hash_password(plaintext: str) -> str:
    """
    Derive a salted scrypt hash.

    Returns:
        `scrypt$n$r$p$salt_hex$digest_hex`, carrying everything needed to
        verify later.
    """
    salt = secrets.token_bytes(PASSWORD_SALT_BYTES)
    derived = _derive(
        plaintext,
        salt,
        PASSWORD_SCRYPT_N,
        PASSWORD_SCRYPT_R,
        PASSWORD_SCRYPT_P,
        PASSWORD_DIGEST_BYTES,
    )
    return PASSWORD_HASH_SEPARATOR.join(
        [
            PASSWORD_HASH_ALGORITHM,
            str(PASSWORD_SCRYPT_N),
            str(PASSWORD_SCRYPT_R),
            str(PASSWORD_SCRYPT_P),
            salt.hex(),
            derived.hex(),
        ]
    )


def verify_password(plaintext: str, stored: str) -> bool:
    """Check `plaintext` against a stored hash; malformed input is a mismatch."""
    try:
        algo, n_str, r_str, p_str, salt_hex, hash_hex = stored.split(PASSWORD_HASH_SEPARATOR)
        if algo != PASSWORD_HASH_ALGORITHM:
            return False
        n, r, p = int(n_str), int(r_str), int(p_str)
        if not (1 < n <= MAX_SCRYPT_N and 0 < r <= MAX_SCRYPT_R and 0 < p <= MAX_SCRYPT_P):
            return False
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(hash_hex)
        if not salt or not expected:
            return False
        candidate = _derive(plaintext, salt, n, r, p, len(expected))
    except (AttributeError, ValueError, TypeError, MemoryError):
        return False

    return hmac.compare_digest(candidate, expected)
