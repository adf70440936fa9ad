"""Shared aiohttp session handling for backend and provider requests."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import aiohttp

from receptionist.config.constants import HTTP_TIMEOUT


@asynccontextmanager
async def client_session(
    session: Optional[aiohttp.ClientSession] = None,
) -> AsyncIterator[aiohttp.ClientSession]:
    """Yield the caller's session, or a fresh one that is closed afterwards."""
    if session is not None:
        yield session
        return
    timeout = aiohttp.ClientTimeout(total=HTTP_TIMEOUT)
    async with aiohttp.ClientSession(timeout=timeout) as owned:
        yield owned
