from __future__ import annotations

from functools import lru_cache
from typing import Protocol

import bcrypt

from salesflow.core.config import get_settings


class PasswordHasher(Protocol):
    def hash(self, plaintext: str) -> str: ...

    def verify(self, plaintext: str, digest: str) -> bool: ...


class BcryptPasswordHasher:
    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, plaintext: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(plaintext.encode("utf-8"), salt).decode("utf-8")

    def verify(self, plaintext: str, digest: str) -> bool:
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), digest.encode("utf-8"))
        except ValueError:
            return False


@lru_cache
def get_password_hasher() -> PasswordHasher:
    return BcryptPasswordHasher(rounds=get_settings().bcrypt_rounds)
