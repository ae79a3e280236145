from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler
from pydantic_core import core_schema
from typing import Any, Optional
from datetime import datetime, timezone
from breachwatch.utils.str import get_sha1, random_token


class VerificationToken(str):
    """Bearer capability for a pending or active subscription, never an identity."""

    @classmethod
    def generate(cls) -> "VerificationToken":
        return cls(random_token())

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: GetCoreSchemaHandler) -> core_schema.CoreSchema:
        return core_schema.no_info_after_validator_function(
            cls,
            core_schema.str_schema(min_length=1),
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )

    def __repr__(self):
        return f"VerificationToken({self[:8]}…)"


class Subscriber(BaseModel):
    """A registered email address tracked through signup, verification and unsubscribe."""
    email: str
    sha1: str = ""
    verification_token: VerificationToken = Field(default_factory=VerificationToken.generate)
    verified: bool = False
    signup_language: Optional[str] = None
    fx_newsletter: bool = False
    fxa_uid: Optional[str] = None
    fxa_refresh_token: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(extra="ignore")

    def model_post_init(self, __context: Any) -> None:
        if not self.sha1:
            self.sha1 = get_sha1(self.email)

    def matches_hash(self, email_hash: Optional[str]) -> bool:
        return bool(email_hash) and self.sha1.upper() == email_hash.strip().upper()

    def to_document(self) -> dict:
        return self.model_dump()


class Breach(BaseModel):
    """Have I Been Pwned breach record, field names as the API sends them."""
    Name: str
    Title: str = ""
    Domain: str = ""
    BreachDate: Optional[str] = None
    PwnCount: int = 0
    DataClasses: list[str] = Field(default_factory=list)
    IsVerified: bool = True
    IsSensitive: bool = False
    IsRetired: bool = False
    IsSpamList: bool = False
    IsFabricated: bool = False

    model_config = ConfigDict(extra="ignore")


class RequestContext(BaseModel):
    """Everything a workflow operation needs from the inbound request."""
    locale: Optional[str] = None
    breaches: list[Breach] = Field(default_factory=list)


class SignupRequest(BaseModel):
    email: Any = None
    additional_emails: bool = False
