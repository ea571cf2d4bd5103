"""bcrypt password hashing with a configurable cost factor."""

import asyncio

import bcrypt


class PasswordHasher:
    """One-way hash and verify for passwords and password reset secrets.

    bcrypt is CPU bound, so the async methods run it in the default executor
    to keep the event loop responsive.
    """

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash_sync(self, plaintext: str) -> str:
        """Hash a plaintext value.

        Args:
            plaintext: Value to hash

        Returns:
            bcrypt hash string
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(plaintext.encode("utf-8"), salt).decode("utf-8")

    def verify_sync(self, plaintext: str, hashed: str) -> bool:
        """Check a plaintext value against a bcrypt hash.

        Malformed hashes and over-long inputs are treated as a mismatch.
        """
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    async def hash(self, plaintext: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.hash_sync, plaintext)

    async def verify(self, plaintext: str, hashed: str) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.verify_sync, plaintext, hashed)
