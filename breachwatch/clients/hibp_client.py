import asyncio
import logging
from functools import partial
from typing import Optional
import requests
from breachwatch.base.exception import BreachLookupError
from breachwatch.base.models import Breach
from breachwatch.handlers.env_handler import env

logger = logging.getLogger(__name__)

KANON_PREFIX_LENGTH = 6

class HibpClient:
    """
    Have I Been Pwned client.

    The breach catalog is public and fetched once at startup. Per-address lookups
    go through the k-anonymity range endpoint, which only ever sees the first six
    hex characters of the address's SHA-1.
    """

    def __init__(self, api_root: str, kanon_api_root: str, kanon_api_token: str, user_agent: str, timeout: float = 5.0):
        self.api_root = api_root
        self.kanon_api_root = kanon_api_root
        self.kanon_api_token = kanon_api_token
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    async def fetch_all_breaches(self) -> list[Breach]:
        """Load every breach HIBP knows about."""
        loop = asyncio.get_event_loop()
        body = await loop.run_in_executor(None, partial(self._get, f"{self.api_root}/breaches"))
        breaches = [Breach(**breach) for breach in body or []]
        logger.info("Loaded %d breaches from HIBP", len(breaches))
        return breaches

    async def get_breaches_for_email(self,
        sha1: str,
        breaches: list[Breach],
        include_sensitive: bool = False,
        filter_breaches: bool = True,
    ) -> list[Breach]:
        """Breaches from the catalog that HIBP lists for this email hash."""
        sha1 = sha1.upper()
        prefix = sha1[:KANON_PREFIX_LENGTH]
        url = f"{self.kanon_api_root}/breachedaccount/range/{prefix}"
        loop = asyncio.get_event_loop()
        body = await loop.run_in_executor(
            None,
            partial(self._get, url, {"hibp-api-key": self.kanon_api_token}),
        )
        found: list[Breach] = []
        # [{"hashSuffix": "...", "websites": ["Adobe", ...]}, ...]
        for account in body or []:
            if sha1 == prefix + account.get("hashSuffix", "").upper():
                websites = set(account.get("websites", []))
                found = [breach for breach in breaches if breach.Name in websites]
                break
        if filter_breaches:
            found = self.filter_breaches(found)
        if include_sensitive:
            return found
        return [breach for breach in found if not breach.IsSensitive]

    @staticmethod
    def filter_breaches(breaches: list[Breach]) -> list[Breach]:
        return [
            breach for breach in breaches
            if breach.IsVerified
            and not breach.IsRetired
            and not breach.IsSpamList
            and not breach.IsFabricated
            and breach.Domain != ""
        ]

    def _get(self, url: str, headers: Optional[dict] = None):
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
            if response.status_code == 404:
                # HIBP answers 404 when nothing matches
                return None
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            raise BreachLookupError(details=f"{url}: {e}") from e

def new_hibp_client() -> HibpClient:
    """HibpClient factory"""
    return HibpClient(
        api_root=env.hibp["api_root"],
        kanon_api_root=env.hibp["kanon_api_root"],
        kanon_api_token=env.hibp["kanon_api_token"],
        user_agent=env.hibp["user_agent"],
        timeout=env.hibp["timeout"],
    )
