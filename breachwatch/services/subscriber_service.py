import logging
from typing import Any, Optional
from urllib.parse import urlencode
from pydantic import EmailStr, TypeAdapter, ValidationError
from breachwatch.base.exception import InvalidEmail, NotSubscribed, DispatchFailure
from breachwatch.base.models import RequestContext, Subscriber, VerificationToken
from breachwatch.clients.fxa_client import FxaClient
from breachwatch.clients.hibp_client import HibpClient
from breachwatch.content import email_content
from breachwatch.handlers.env_handler import env
from breachwatch.repositories.subscriber_repository import SubscriberRepository
from breachwatch.services.email_service import EmailService

logger = logging.getLogger(__name__)

BASE_URL = env.state["base_url"]

_email_adapter = TypeAdapter(EmailStr)

def validate_email(email: Any) -> str:
    """Return the trimmed address or raise InvalidEmail."""
    if not isinstance(email, str) or not email.strip():
        raise InvalidEmail(email)
    try:
        _email_adapter.validate_python(email.strip())
    except ValidationError:
        raise InvalidEmail(email)
    return email.strip()

def verification_url(token: VerificationToken) -> str:
    return f"{BASE_URL}/user/verify?{urlencode({'token': str(token)})}"

def unsubscribe_url(subscriber: Subscriber) -> str:
    query = urlencode({"token": str(subscriber.verification_token), "hash": subscriber.sha1})
    return f"{BASE_URL}/user/unsubscribe?{query}"

class SubscriberService:
    """Signup, verification and unsubscribe workflows."""

    def __init__(self,
        repository: SubscriberRepository,
        email_service: EmailService,
        fxa_client: FxaClient,
        hibp_client: HibpClient,
    ):
        self.repository = repository
        self.email_service = email_service
        self.fxa_client = fxa_client
        self.hibp_client = hibp_client

    async def add(self, email: Any, ctx: RequestContext, fx_newsletter: bool = False) -> Optional[Subscriber]:
        """
        Sign up an address and send it a verification link.

        A pending address gets a fresh token and language in place of the old
        ones. An already verified address is left alone and gets no email,
        including one verified between our read and our write.
        Returns the pending subscriber, or None when nothing was sent.
        """
        email = validate_email(email)
        existing = await self.repository.find_by_email(email)
        if existing and existing.verified:
            logger.info("Signup for an already verified address, nothing to do")
            return None

        subscriber = Subscriber(
            email=email,
            verification_token=VerificationToken.generate(),
            verified=False,
            signup_language=ctx.locale,
            fx_newsletter=fx_newsletter,
        )
        if existing:
            subscriber.created_at = existing.created_at
            subscriber.fxa_uid = existing.fxa_uid
            subscriber.fxa_refresh_token = existing.fxa_refresh_token
        subscriber = await self.repository.upsert_pending(subscriber)
        if subscriber is None:
            logger.info("Address was verified while signing up again, nothing to do")
            return None

        await self.email_service.send(
            email_content.DEFAULT_EMAIL_TEMPLATE,
            subscriber.email,
            {
                "subject": email_content.VERIFY_SUBJECT,
                "which_view": email_content.VERIFY_VIEW,
                "banner_text": email_content.get_random_verify_banner(),
                "email": subscriber.email,
                "verification_url": verification_url(subscriber.verification_token),
                "unsubscribe_url": unsubscribe_url(subscriber),
                "text": f"Verify your address: {verification_url(subscriber.verification_token)}",
            },
        )
        return subscriber

    async def verify(self, token: Optional[str], ctx: RequestContext) -> Subscriber:
        """
        Confirm an address. Only the unverified to verified transition sends the
        breach report; verifying again is a quiet success.
        """
        subscriber = await self.repository.find_by_token(token)
        if not subscriber:
            raise NotSubscribed()
        if subscriber.verified:
            return subscriber

        breaches = await self.hibp_client.get_breaches_for_email(subscriber.sha1, ctx.breaches)

        verified = await self.repository.mark_verified(subscriber.verification_token)
        if not verified:
            # a concurrent request already flipped the flag and owns the email
            current = await self.repository.find_by_token(token)
            if not current:
                raise NotSubscribed()
            if not current.verified:
                # the winner could not send its report and rolled back
                raise DispatchFailure(current.email, details="confirmation was not sent, try again")
            return current

        try:
            await self.email_service.send(
                email_content.DEFAULT_EMAIL_TEMPLATE,
                verified.email,
                {
                    "subject": email_content.REPORT_SUBJECT,
                    "which_view": email_content.REPORT_VIEW,
                    "banner_text": email_content.get_random_report_banner(len(breaches)),
                    "email": verified.email,
                    "breaches": [breach.model_dump() for breach in breaches],
                    "unsubscribe_url": unsubscribe_url(verified),
                    "text": f"{len(breaches)} known breaches for {verified.email}.",
                },
            )
        except DispatchFailure:
            await self.repository.reset_verified(verified.verification_token)
            raise
        return verified

    async def get_unsubscribe(self, token: Optional[str], email_hash: Optional[str]) -> Subscriber:
        """Resolve an unsubscribe link without changing anything."""
        return await self._resolve(token, email_hash)

    async def post_unsubscribe(self, token: Optional[str], email_hash: Optional[str]) -> Subscriber:
        """
        Delete the subscriber, then revoke any linked FXA grant. The deletion
        stands whatever the revocation outcome.
        """
        subscriber = await self._resolve(token, email_hash)
        if not await self.repository.delete(subscriber):
            raise NotSubscribed()

        try:
            revoked = await self.fxa_client.revoke_oauth_token(subscriber.fxa_refresh_token)
        except Exception:
            logger.exception("FXA revocation raised after unsubscribing uid %s", subscriber.fxa_uid)
            revoked = False
        if not revoked and subscriber.fxa_refresh_token:
            logger.warning("Unsubscribed without revoking FXA grant for uid %s", subscriber.fxa_uid)
        return subscriber

    async def _resolve(self, token: Optional[str], email_hash: Optional[str]) -> Subscriber:
        if not token or not email_hash:
            raise NotSubscribed()
        subscriber = await self.repository.find_by_token(token)
        if not subscriber or not subscriber.matches_hash(email_hash):
            raise NotSubscribed()
        return subscriber

def new_subscriber_service(
    repository: SubscriberRepository,
    email_service: EmailService,
    fxa_client: FxaClient,
    hibp_client: HibpClient,
) -> SubscriberService:
    return SubscriberService(repository, email_service, fxa_client, hibp_client)
