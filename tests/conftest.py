import asyncio
import copy
import os
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import DuplicateKeyError

# Settings are read at import time, so they have to exist before anything
# under breachwatch is imported.
os.environ.setdefault("SENDER_EMAIL", "alerts@test.com")
os.environ.setdefault("BASE_URL", "http://localhost:6060")
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("MAILJET_API_KEY", "test-api-key")
os.environ.setdefault("MAILJET_SECRET_KEY", "test-secret-key")
os.environ.setdefault("OAUTH_CLIENT_ID", "test-client-id")
os.environ.setdefault("OAUTH_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("HIBP_KANON_API_TOKEN", "test-kanon-token")
os.environ["RATE_LIMIT_ENABLED"] = "false"

from breachwatch.base.models import Breach, Subscriber, VerificationToken  # noqa: E402
from breachwatch.clients.fxa_client import FxaClient  # noqa: E402
from breachwatch.clients.hibp_client import HibpClient  # noqa: E402
from breachwatch.repositories.subscriber_repository import SubscriberRepository  # noqa: E402
from breachwatch.services.email_service import EmailService  # noqa: E402
from breachwatch.services.subscriber_service import SubscriberService  # noqa: E402


class InMemoryCollection:
    """Just enough of AsyncIOMotorCollection for SubscriberRepository."""

    def __init__(self):
        self.documents: list[dict] = []
        self.indexes: list[tuple] = []

    def _matches(self, document: dict, query: dict) -> bool:
        return all(document.get(key) == value for key, value in query.items())

    def _first(self, query: dict):
        return next((doc for doc in self.documents if self._matches(doc, query)), None)

    def _check_unique(self, candidate: dict, exclude: dict = None):
        for key, unique in self.indexes:
            if not unique:
                continue
            for document in self.documents:
                if document is not exclude and document.get(key) == candidate.get(key):
                    raise DuplicateKeyError(f"E11000 duplicate key error index: {key}_1")

    def _upsert(self, query: dict, update: dict):
        document = dict(query) | update.get("$setOnInsert", {}) | update.get("$set", {})
        self._check_unique(document)
        document["_id"] = len(self.documents) + 1
        self.documents.append(document)
        return document

    def _apply(self, document: dict, update: dict):
        updated = document | update.get("$set", {})
        self._check_unique(updated, exclude=document)
        document.update(update.get("$set", {}))

    async def create_index(self, keys, unique: bool = False):
        self.indexes.append((keys, unique))
        return keys

    async def find_one(self, query: dict):
        document = self._first(query)
        return copy.deepcopy(document) if document else None

    async def update_one(self, query: dict, update: dict, upsert: bool = False):
        document = self._first(query)
        if document is None:
            if not upsert:
                return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)
            document = self._upsert(query, update)
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=document["_id"])
        self._apply(document, update)
        return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)

    async def find_one_and_update(self, query: dict, update: dict, upsert: bool = False, return_document=None):
        document = self._first(query)
        if document is None:
            if not upsert:
                return None
            document = self._upsert(query, update)
        else:
            self._apply(document, update)
        return copy.deepcopy(document)

    async def delete_one(self, query: dict):
        document = self._first(query)
        if document is None:
            return SimpleNamespace(deleted_count=0)
        self.documents.remove(document)
        return SimpleNamespace(deleted_count=1)


def run(coroutine):
    return asyncio.run(coroutine)


TEST_DATA = {
    "unverifiedemail": Subscriber(
        email="unverifiedemail@test.com",
        verification_token=VerificationToken("0e2cb147-2041-4e5b-8ca9-494e773b2cf0"),
        verified=False,
        signup_language="en-US",
    ),
    "verifiedemail": Subscriber(
        email="verifiedemail@test.com",
        verification_token=VerificationToken("0e2cb147-2041-4e5b-8ca9-494e773b2cf1"),
        verified=True,
        signup_language="en-US",
    ),
    "firefoxaccount": Subscriber(
        email="firefoxaccount@test.com",
        verification_token=VerificationToken("0e2cb147-2041-4e5b-8ca9-494e773b2cf2"),
        verified=True,
        signup_language="en-US",
        fxa_uid="12345",
        fxa_refresh_token="4a4792b89434153f1a6262fbd6a4510c00834ff842585fc4f4d972da158f0fc1",
        created_at=datetime(2019, 1, 1, tzinfo=timezone.utc),
    ),
}

TEST_BREACHES = [
    Breach(Name="Adobe", Title="Adobe", Domain="adobe.com", BreachDate="2013-10-04",
           PwnCount=152445165, DataClasses=["Email addresses", "Passwords"]),
    Breach(Name="Ashley", Title="Ashley Madison", Domain="ashleymadison.com", BreachDate="2015-07-19",
           DataClasses=["Email addresses"], IsSensitive=True),
    Breach(Name="Spammy", Title="Spam list", Domain="spam.example", IsSpamList=True),
]


@pytest.fixture
def collection() -> InMemoryCollection:
    return InMemoryCollection()


@pytest.fixture
def repository(collection) -> SubscriberRepository:
    repository = SubscriberRepository(collection)
    run(repository.ensure_indexes())
    for subscriber in TEST_DATA.values():
        run(repository.upsert(subscriber.model_copy()))
    return repository


@pytest.fixture
def email_service() -> MagicMock:
    service = MagicMock(spec=EmailService)
    service.send = AsyncMock(return_value=None)
    return service


@pytest.fixture
def fxa_client() -> MagicMock:
    client = MagicMock(spec=FxaClient)
    client.revoke_oauth_token = AsyncMock(return_value=True)
    return client


@pytest.fixture
def hibp_client() -> MagicMock:
    client = MagicMock(spec=HibpClient)
    client.get_breaches_for_email = AsyncMock(return_value=TEST_BREACHES[:1])
    return client


@pytest.fixture
def subscriber_service(repository, email_service, fxa_client, hibp_client) -> SubscriberService:
    return SubscriberService(repository, email_service, fxa_client, hibp_client)
