"""Pydantic models for token exchange and session API payloads

This module provides the token records owned by the token providers and the
request/response bodies of the remote session API.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# A Trader API access token is valid for 30 minutes after creation; the
# session API cache keeps it one minute less.
SESSION_TOKEN_LIFETIME = timedelta(minutes=29)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


class AccessToken(BaseModel):
    """OAuth2 token endpoint response

    Immutable; a refresh produces a new instance instead of updating
    this one.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str = Field(..., min_length=1, description="Bearer token")
    token_type: str = Field("Bearer", min_length=1, description="Token type")
    refresh_token: str | None = Field(None, description="Refresh token")
    expires_in: int = Field(
        1800, ge=0, description="Lifetime in seconds from issue"
    )
    scope: str | None = Field(None, description="Granted scope")
    id_token: str | None = Field(None, description="OpenID token")
    issued_at: datetime = Field(default_factory=utc_now)

    @property
    def expires_at(self) -> datetime:
        """Absolute expiry derived from issue time and lifetime"""
        return self.issued_at + timedelta(seconds=self.expires_in)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the token can no longer be used"""
        return (now or utc_now()) >= self.expires_at

    @property
    def authorization(self) -> str:
        """Value for the HTTP Authorization header"""
        return f"{self.token_type} {self.access_token}"


@dataclass(frozen=True)
class CachedSessionToken:
    """Single cached token vended by the session API"""

    access_token: str
    expires_at: datetime

    @classmethod
    def issue(cls, access_token: str) -> "CachedSessionToken":
        """Cache a freshly fetched token with the short safety horizon"""
        return cls(
            access_token=access_token,
            expires_at=utc_now() + SESSION_TOKEN_LIFETIME,
        )

    def is_valid(self, now: datetime | None = None) -> bool:
        """Check whether the cached token is still inside its window"""
        return (now or utc_now()) < self.expires_at


class RemoteTokenRequest(BaseModel):
    """Body of the session API token refresh call"""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    brokerage: str = Field(..., min_length=1)
    deploy_id: str = Field(..., min_length=1)
    project_id: int
    account_number: str = Field(..., min_length=1, alias="accountId")

    @field_validator("brokerage")
    @classmethod
    def lower_brokerage(cls, v: str) -> str:
        """The session API keys brokerages by lower-case name"""
        return v.lower()

    def to_json(self) -> str:
        """Serialize with the session API's camel-cased field names"""
        return self.model_dump_json(by_alias=True)


class RemoteTokenResponse(BaseModel):
    """Session API reply: a token on success, error strings otherwise"""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    success: bool = False
    access_token: str | None = None
    errors: list[str] = Field(default_factory=list)
