"""Password Hashing Engine.

Argon2id (memory-hard, salted) via argon2-cffi. Digests are PHC strings
(``$argon2id$v=19$m=...,t=...,p=...$salt$hash``) so parameters and salt
travel with the hash and verification needs no side-channel state.
Parameters default to the OWASP recommendations and can be raised later;
``needs_rehash`` tells callers when a stored digest is outdated.
"""

from dataclasses import dataclass

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from forum.core.errors import EmptyPassword, MalformedDigest, PasswordTooLong
from forum.core.metrics import metrics

# Passwords are limited in UTF-8 bytes, not characters.
MAX_PASSWORD_LENGTH = 64


@dataclass
class Argon2Params:
    """Argon2 parameters (OWASP 2024 recommendations)."""
    time_cost: int = 3  # Iterations
    memory_cost: int = 65536  # 64 MiB in KiB
    parallelism: int = 4
    hash_len: int = 32
    salt_len: int = 16


class PasswordEngine:
    """Hashes and verifies account passwords."""

    def __init__(self, params: Argon2Params | None = None):
        self.params = params or Argon2Params()
        self._hasher = PasswordHasher(
            time_cost=self.params.time_cost,
            memory_cost=self.params.memory_cost,
            parallelism=self.params.parallelism,
            hash_len=self.params.hash_len,
            salt_len=self.params.salt_len,
            type=Type.ID,
        )

    @staticmethod
    def _check_length(password: str) -> None:
        if not password:
            raise EmptyPassword()
        if len(password.encode("utf-8")) > MAX_PASSWORD_LENGTH:
            raise PasswordTooLong(f"Password must be at most {MAX_PASSWORD_LENGTH} bytes")

    def hash_password(self, password: str) -> str:
        """Hash a password with a fresh random salt.

        Raises:
            EmptyPassword: password is empty
            PasswordTooLong: password exceeds MAX_PASSWORD_LENGTH bytes
        """
        self._check_length(password)
        with metrics.track_password_hash("hash"):
            return self._hasher.hash(password)

    def verify_password(self, password: str, digest: str) -> bool:
        """Check a password against a stored digest.

        Returns False on mismatch. Raises only for bad input: an empty or
        too long password, or a digest that cannot be parsed (MalformedDigest).
        """
        self._check_length(password)
        if not digest or not digest.startswith("$argon2"):
            raise MalformedDigest()
        try:
            with metrics.track_password_hash("verify"):
                return self._hasher.verify(digest, password)
        except VerifyMismatchError:
            return False
        except InvalidHashError:
            raise MalformedDigest()
        except VerificationError:
            # Structurally valid PHC string whose parameters do not verify
            return False

    def needs_rehash(self, digest: str) -> bool:
        """True if the digest was made with parameters other than the current ones."""
        try:
            return self._hasher.check_needs_rehash(digest)
        except InvalidHashError:
            raise MalformedDigest()


password_engine = PasswordEngine()
