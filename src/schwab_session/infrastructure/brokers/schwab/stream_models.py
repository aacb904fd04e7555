"""Pydantic models for the Schwab streamer protocol

Outbound frames wrap one request in ``{"requests": [...]}``. Inbound frames
are exactly one of ``{"notify": [...]}``, ``{"response": [...]}`` or
``{"data": [...]}``; parse_stream_message picks the variant from the key.
"""

import json
from enum import Enum
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

from schwab_session.shared.exceptions import StreamDecodeError


class Service(str, Enum):
    """Streamer services handled by the session"""

    ADMIN = "ADMIN"
    ACCOUNT = "ACCT_ACTIVITY"

    @classmethod
    def _missing_(cls, value: object) -> "Service | None":
        if value == "ACCOUNT":
            return cls.ACCOUNT
        return None


class Command(str, Enum):
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    SUBS = "SUBS"


def resolve_service(name: str) -> Service | None:
    """Map a wire service name to a known Service, or None if unhandled"""
    try:
        return Service(name)
    except ValueError:
        return None


class StreamerInfo(BaseModel):
    """Connection parameters from the user preference ``streamerInfo`` entry"""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    streamer_socket_url: str = Field(..., min_length=1)
    schwab_client_customer_id: str
    schwab_client_correl_id: str
    schwab_client_channel: str
    schwab_client_function_id: str


class StreamRequest(BaseModel):
    """One outbound streamer request"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    request_id: int = Field(..., ge=0, alias="requestid")
    service: Service
    command: Command
    customer_id: str = Field(..., alias="SchwabClientCustomerId")
    correl_id: str = Field(..., alias="SchwabClientCorrelId")
    parameters: dict[str, str] | None = None

    @field_serializer("request_id")
    def serialize_request_id(self, request_id: int) -> str:
        return str(request_id)

    def to_frame(self) -> str:
        """Serialize as a text frame, omitting unset fields"""
        return json.dumps(
            {
                "requests": [
                    self.model_dump(
                        mode="json", by_alias=True, exclude_none=True
                    )
                ]
            }
        )


def admin_login_request(
    request_id: int, info: StreamerInfo, access_token: str
) -> StreamRequest:
    """ADMIN LOGIN request carrying the bearer token"""
    return StreamRequest(
        request_id=request_id,
        service=Service.ADMIN,
        command=Command.LOGIN,
        customer_id=info.schwab_client_customer_id,
        correl_id=info.schwab_client_correl_id,
        parameters={
            "Authorization": access_token,
            "SchwabClientChannel": info.schwab_client_channel,
            "SchwabClientFunctionId": info.schwab_client_function_id,
        },
    )


def admin_logout_request(request_id: int, info: StreamerInfo) -> StreamRequest:
    return StreamRequest(
        request_id=request_id,
        service=Service.ADMIN,
        command=Command.LOGOUT,
        customer_id=info.schwab_client_customer_id,
        correl_id=info.schwab_client_correl_id,
    )


def account_subscribe_request(
    request_id: int, info: StreamerInfo
) -> StreamRequest:
    """Subscribe to account activity for every account of the customer"""
    return StreamRequest(
        request_id=request_id,
        service=Service.ACCOUNT,
        command=Command.SUBS,
        customer_id=info.schwab_client_customer_id,
        correl_id=info.schwab_client_correl_id,
        parameters={"keys": "Account Activity", "fields": "0,1,2,3"},
    )


class ResponseContent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    code: int
    message: str | None = Field(None, alias="msg")


class ServiceResponse(BaseModel):
    """Result of one request, as echoed back in a response frame"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    service: str
    command: str | None = None
    request_id: str | None = Field(None, alias="requestid")
    timestamp: int | None = None
    content: ResponseContent

    @field_validator("request_id", mode="before")
    @classmethod
    def normalize_request_id(cls, v: object) -> object:
        """The streamer echoes request ids as strings or integers"""
        if isinstance(v, int):
            return str(v)
        return v


class AccountContent(BaseModel):
    """One account activity event

    Field keys on the wire are positional: "1" account, "2" message type,
    "3" message data (an embedded JSON document). Unknown keys are kept.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    seq: int | None = None
    key: str | None = None
    account: str | None = Field(None, alias="1")
    message_type: str | None = Field(None, alias="2")
    message_data: str | None = Field(None, alias="3")


class ServiceData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    service: str
    command: str | None = None
    timestamp: int | None = None
    content: list[AccountContent] = Field(default_factory=list)


class NotifyMessage(BaseModel):
    """Heartbeat / keepalive frame"""

    kind: Literal["notify"] = "notify"
    notify: list[dict[str, Any]]


class ResponseMessage(BaseModel):
    kind: Literal["response"] = "response"
    response: list[ServiceResponse]


class DataMessage(BaseModel):
    kind: Literal["data"] = "data"
    data: list[ServiceData]


StreamMessage = NotifyMessage | ResponseMessage | DataMessage

_MESSAGE_TYPES: dict[str, type[BaseModel]] = {
    "notify": NotifyMessage,
    "response": ResponseMessage,
    "data": DataMessage,
}


def parse_stream_message(raw: str | bytes) -> StreamMessage:
    """Classify and decode one inbound frame

    Raises:
        StreamDecodeError: If the frame is not JSON, carries none of the
            notify/response/data keys, or does not match that variant
    """
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StreamDecodeError(f"Frame is not valid JSON: {raw!r}") from e

    if isinstance(frame, dict):
        for key, model in _MESSAGE_TYPES.items():
            if key not in frame:
                continue
            try:
                return model.model_validate(frame)  # type: ignore[return-value]
            except ValidationError as e:
                raise StreamDecodeError(
                    f"Malformed {key} frame: {raw!r}"
                ) from e

    raise StreamDecodeError(f"Unable to parse response: {raw!r}")
