"""Password hashing utilities using bcrypt."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import bcrypt

BCRYPT_ROUNDS = 12

_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="bcrypt")

DUMMY_HASH = bcrypt.hashpw(b"dummy", bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def _hash_sync(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def _check_sync(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        # Malformed stored hash
        return False


async def hash_password(password: str) -> str:
    """Hash a password off the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_executor, _hash_sync, password)


async def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash; malformed hashes never match."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_executor, _check_sync, plain, hashed)
