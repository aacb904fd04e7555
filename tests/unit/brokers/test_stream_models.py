"""Tests for streamer frame models and the classify-and-parse step"""

import json

import pytest

from schwab_session.infrastructure.brokers.schwab.stream_models import (
    AccountContent,
    Command,
    DataMessage,
    NotifyMessage,
    ResponseMessage,
    Service,
    account_subscribe_request,
    admin_login_request,
    admin_logout_request,
    parse_stream_message,
    resolve_service,
)
from schwab_session.shared.exceptions import StreamDecodeError


@pytest.mark.unit
class TestParseStreamMessage:
    def test_notify(self):
        message = parse_stream_message('{"notify":[{"heartbeat":"1668715135567"}]}')

        assert isinstance(message, NotifyMessage)
        assert message.kind == "notify"
        assert message.notify == [{"heartbeat": "1668715135567"}]

    def test_response(self):
        message = parse_stream_message(
            json.dumps(
                {
                    "response": [
                        {
                            "service": "ADMIN",
                            "command": "LOGIN",
                            "requestid": "0",
                            "SchwabClientCorrelId": "correl-456",
                            "timestamp": 1668715135567,
                            "content": {"code": 0, "msg": "server=s0635dc6-1"},
                        }
                    ]
                }
            )
        )

        assert isinstance(message, ResponseMessage)
        response = message.response[0]
        assert response.service == "ADMIN"
        assert response.request_id == "0"
        assert response.content.code == 0
        assert response.content.message == "server=s0635dc6-1"

    def test_response_with_integer_request_id(self):
        message = parse_stream_message(
            '{"response":[{"service":"ADMIN","command":"LOGIN",'
            '"requestid":0,"content":{"code":0,"msg":"ok"}}]}'
        )

        assert isinstance(message, ResponseMessage)
        assert message.response[0].request_id == "0"

    def test_data(self):
        message = parse_stream_message(
            json.dumps(
                {
                    "data": [
                        {
                            "service": "ACCT_ACTIVITY",
                            "timestamp": 1668715135567,
                            "command": "SUBS",
                            "content": [
                                {
                                    "seq": 1,
                                    "key": "Account Activity",
                                    "1": "12345678",
                                    "2": "OrderCreated",
                                    "3": '{"SchwabOrderID":"1"}',
                                }
                            ],
                        }
                    ]
                }
            )
        )

        assert isinstance(message, DataMessage)
        content = message.data[0].content[0]
        assert content.account == "12345678"
        assert content.message_type == "OrderCreated"
        assert json.loads(content.message_data) == {"SchwabOrderID": "1"}

    def test_data_keeps_unknown_fields(self):
        message = parse_stream_message(
            '{"data":[{"service":"ACCOUNT","content":[{"seq":2,"4":"extra"}]}]}'
        )

        content = message.data[0].content[0]
        assert content.seq == 2
        assert content.model_extra == {"4": "extra"}

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[]",
            "{}",
            '{"snapshot": []}',
            '{"response": [{"service": "ADMIN"}]}',
            '{"data": "oops"}',
        ],
    )
    def test_rejects_unknown_or_malformed(self, raw):
        with pytest.raises(StreamDecodeError):
            parse_stream_message(raw)

    def test_outbound_frame_is_not_an_inbound_message(self, streamer_info):
        """A serialized login request has none of the inbound keys"""
        frame = admin_login_request(0, streamer_info, "token").to_frame()

        with pytest.raises(StreamDecodeError):
            parse_stream_message(frame)


@pytest.mark.unit
class TestServices:
    def test_account_accepts_both_names(self):
        assert resolve_service("ACCT_ACTIVITY") is Service.ACCOUNT
        assert resolve_service("ACCOUNT") is Service.ACCOUNT
        assert resolve_service("ADMIN") is Service.ADMIN

    def test_unknown_service(self):
        assert resolve_service("LEVELONE_EQUITIES") is None


@pytest.mark.unit
class TestOutboundRequests:
    def test_login_frame(self, streamer_info):
        frame = json.loads(
            admin_login_request(0, streamer_info, "bearer-token").to_frame()
        )

        assert frame == {
            "requests": [
                {
                    "requestid": "0",
                    "service": "ADMIN",
                    "command": "LOGIN",
                    "SchwabClientCustomerId": "customer-123",
                    "SchwabClientCorrelId": "correl-456",
                    "parameters": {
                        "Authorization": "bearer-token",
                        "SchwabClientChannel": "N9",
                        "SchwabClientFunctionId": "APIAPP",
                    },
                }
            ]
        }

    def test_logout_frame_omits_parameters(self, streamer_info):
        request = admin_logout_request(3, streamer_info)
        frame = json.loads(request.to_frame())["requests"][0]

        assert request.command is Command.LOGOUT
        assert frame["requestid"] == "3"
        assert "parameters" not in frame

    def test_account_subscribe_frame(self, streamer_info):
        frame = json.loads(
            account_subscribe_request(1, streamer_info).to_frame()
        )["requests"][0]

        assert frame["service"] == "ACCT_ACTIVITY"
        assert frame["command"] == "SUBS"
        assert frame["requestid"] == "1"
        assert frame["parameters"] == {
            "keys": "Account Activity",
            "fields": "0,1,2,3",
        }


@pytest.mark.unit
def test_account_content_by_field_name():
    content = AccountContent(account="1", message_type="OrderFill")

    assert content.account == "1"
    assert content.message_type == "OrderFill"
