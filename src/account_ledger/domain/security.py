"""PIN hashing for accounts."""

from dataclasses import dataclass
from functools import lru_cache

from passlib.context import CryptContext


pwd = CryptContext(schemes=["bcrypt"], deprecated="auto")


@lru_cache(maxsize=8)
def _context_for(rounds: int) -> CryptContext:
    return pwd.copy(bcrypt__rounds=rounds)


@dataclass(frozen=True, repr=False)
class PinHash:
    """Salted bcrypt hash of an account PIN."""

    hashed: str

    @classmethod
    def from_pin(cls, pin: str, rounds: int) -> "PinHash":
        # bcrypt generates a fresh salt per call and embeds it with the cost in the hash.
        return cls(hashed=_context_for(rounds).hash(pin))

    def matches(self, candidate: str | None) -> bool:
        if candidate is None:
            return False
        return pwd.verify(candidate, self.hashed)

    def __repr__(self) -> str:
        return "PinHash(<redacted>)"
