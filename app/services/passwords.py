"""Password hashing helpers built on bcrypt."""

import bcrypt


class PasswordHasher:
    """Salted, deliberately slow one-way hashing with a tunable work factor."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(
            password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)
        ).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Malformed stored hash or a password bcrypt refuses to process.
            return False

    def needs_rehash(self, password_hash: str) -> bool:
        """Return True when the stored hash was produced with fewer rounds."""
        try:
            cost = int(password_hash.split("$")[2])
        except (IndexError, ValueError):
            return True
        return cost < self.rounds
