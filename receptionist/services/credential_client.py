"""
Credential exchange with the salon backend.

Each call attempt asks the backend for a fresh, short-lived credential: a
signed URL for the managed provider, or an ephemeral token with session
metadata for the peer transport. Nothing is cached and nothing is retried;
the caller decides what to do with a CredentialFetchError.
"""

import asyncio
import logging
from typing import Optional

import aiohttp
from pydantic import BaseModel, ValidationError

from receptionist.config import backend_url, realtime_model
from receptionist.config.constants import (
    CREDENTIAL_REALTIME_SESSION,
    CREDENTIAL_SIGNED_URL,
    LOGGER_NAME,
    REALTIME_SESSION_PATH,
    SIGNED_URL_PATH,
)
from receptionist.errors import CredentialFetchError
from receptionist.models.message_schemas import (
    CredentialArtifact,
    RealtimeCredential,
    RealtimeSessionResponse,
    SignedUrlCredential,
    SignedUrlResponse,
)
from receptionist.services.http_session import client_session

logger = logging.getLogger(LOGGER_NAME)


class CredentialClient:
    """
    Fetches single-use provider credentials from the backend.

    Args:
        base_url: Backend origin, e.g. http://localhost:8000
        session: Optional aiohttp session to reuse; a new one is opened per
            request otherwise
    """

    def __init__(self, base_url: Optional[str] = None, session: Optional[aiohttp.ClientSession] = None):
        self.base_url = (base_url or backend_url()).rstrip("/")
        self.session = session

    async def fetch_credential(self, kind: str) -> CredentialArtifact:
        """Fetch the credential kind a transport asks for."""
        if kind == CREDENTIAL_SIGNED_URL:
            return await self.fetch_signed_url()
        if kind == CREDENTIAL_REALTIME_SESSION:
            return await self.fetch_realtime_session()
        raise CredentialFetchError(f"Unknown credential kind: {kind}")

    async def fetch_signed_url(self) -> SignedUrlCredential:
        payload = await self._request("GET", SIGNED_URL_PATH, SignedUrlResponse)
        return SignedUrlCredential(signed_url=payload.signedUrl)

    async def fetch_realtime_session(self) -> RealtimeCredential:
        payload = await self._request("POST", REALTIME_SESSION_PATH, RealtimeSessionResponse)
        return RealtimeCredential(
            token=payload.token,
            session_id=payload.sessionId,
            model=payload.model or realtime_model(),
        )

    async def _request(self, method: str, path: str, schema: type) -> BaseModel:
        url = f"{self.base_url}{path}"
        logger.info(f"Requesting credential: {method} {url}")
        try:
            async with client_session(self.session) as session:
                async with session.request(method, url) as response:
                    if response.status < 200 or response.status >= 300:
                        raise CredentialFetchError(
                            f"Failed to get credential from server: HTTP error! status: {response.status}"
                        )
                    data = await response.json(content_type=None)
        except CredentialFetchError as e:
            logger.error(e.message)
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Error fetching credential from {url}: {e}")
            raise CredentialFetchError(f"Failed to get credential from server: {e}") from e

        try:
            return schema.model_validate(data)
        except ValidationError as e:
            logger.error(f"Malformed credential payload from {url}: {e}")
            raise CredentialFetchError(
                "Failed to get credential from server: missing or invalid field in response"
            ) from e
