import asyncio
import logging
from functools import partial
from typing import Optional
from urllib.parse import urlsplit
import requests
from breachwatch.base.exception import RevocationFailure
from breachwatch.handlers.env_handler import env

logger = logging.getLogger(__name__)

class FxaClient:
    """Firefox Accounts OAuth server, used only to destroy refresh tokens."""

    def __init__(self, token_uri: str, client_id: str, client_secret: str, timeout: float = 5.0):
        parts = urlsplit(token_uri)
        self.destroy_url = f"{parts.scheme}://{parts.netloc}/v1/destroy"
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.session = requests.Session()

    async def revoke_oauth_token(self, refresh_token: Optional[str]) -> bool:
        """
        Best-effort revocation. Returns True if FXA accepted the destroy call.
        Failures are logged and reported as False, never raised.
        """
        if not refresh_token:
            logger.info("No FXA refresh token to revoke")
            return False
        try:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, partial(self._destroy, refresh_token))
            return True
        except RevocationFailure as e:
            logger.warning("FXA revocation failed: %s", e.details)
            return False

    def _destroy(self, refresh_token: str):
        body = {
            "token": refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        try:
            response = self.session.post(self.destroy_url, json=body, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise RevocationFailure(details=str(e)) from e

def new_fxa_client() -> FxaClient:
    """FxaClient factory"""
    return FxaClient(
        token_uri=env.fxa["token_uri"],
        client_id=env.fxa["client_id"],
        client_secret=env.fxa["client_secret"],
        timeout=env.fxa["timeout"],
    )
