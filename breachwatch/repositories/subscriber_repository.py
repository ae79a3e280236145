from motor.motor_asyncio import AsyncIOMotorCollection
from typing import Optional
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from breachwatch.base.models import Subscriber, VerificationToken
from breachwatch.utils.str import get_sha1
from datetime import datetime, timezone

class SubscriberRepository:
    """Subscriber documents, keyed by email hash and by verification token."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def ensure_indexes(self):
        """One subscriber per address and per token."""
        await self.collection.create_index("sha1", unique=True)
        await self.collection.create_index("verification_token", unique=True)

    async def find_by_email(self, email: str) -> Optional[Subscriber]:
        """Retrieve a subscriber by email, case-insensitively."""
        return await self._find_one({"sha1": get_sha1(email)})

    async def find_by_token(self, token: VerificationToken) -> Optional[Subscriber]:
        """Retrieve a subscriber by verification token."""
        if not token:
            return None
        return await self._find_one({"verification_token": str(token)})

    async def upsert(self, subscriber: Subscriber) -> Subscriber:
        """Insert the subscriber, or overwrite the record stored under the same email."""
        document = subscriber.to_document()
        created_at = document.pop("created_at")
        document["updated_at"] = datetime.now(timezone.utc)
        await self.collection.update_one(
            {"sha1": subscriber.sha1},
            {"$set": document, "$setOnInsert": {"created_at": created_at}},
            upsert=True,
        )
        return await self.find_by_email(subscriber.email)

    async def upsert_pending(self, subscriber: Subscriber) -> Optional[Subscriber]:
        """
        Insert the pending subscriber, or refresh the record under the same email
        only while it is still unverified. None means the address is already
        verified and nothing was written.
        """
        document = subscriber.to_document()
        created_at = document.pop("created_at")
        document["updated_at"] = datetime.now(timezone.utc)
        document["verified"] = False
        try:
            stored = await self.collection.find_one_and_update(
                {"sha1": subscriber.sha1, "verified": False},
                {"$set": document, "$setOnInsert": {"created_at": created_at}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            # a verified record holds this sha1, so the upsert tried to insert a second one
            return None
        return Subscriber(**stored)

    async def mark_verified(self, token: VerificationToken) -> Optional[Subscriber]:
        """Flip verified to true only if it is still false. None means someone else won."""
        return await self._transition(token, verified_from=False, verified_to=True)

    async def reset_verified(self, token: VerificationToken) -> Optional[Subscriber]:
        """Undo mark_verified when the confirmation never went out."""
        return await self._transition(token, verified_from=True, verified_to=False)

    async def delete(self, subscriber: Subscriber) -> bool:
        """Delete the subscriber holding this token and email hash."""
        result = await self.collection.delete_one({
            "verification_token": str(subscriber.verification_token),
            "sha1": subscriber.sha1,
        })
        return result.deleted_count > 0

    async def _transition(self, token: VerificationToken, verified_from: bool, verified_to: bool) -> Optional[Subscriber]:
        document = await self.collection.find_one_and_update(
            {"verification_token": str(token), "verified": verified_from},
            {"$set": {"verified": verified_to, "updated_at": datetime.now(timezone.utc)}},
            return_document=ReturnDocument.AFTER,
        )
        if document:
            return Subscriber(**document)
        return None

    async def _find_one(self, query: dict) -> Optional[Subscriber]:
        document = await self.collection.find_one(query)
        if document:
            return Subscriber(**document)
        return None
