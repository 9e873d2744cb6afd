from unittest.mock import AsyncMock, patch

import httpx
import pytest

from broker_bridge.services.broker_service import BrokerClient
from broker_bridge.services.result import ErrorCode
from tests.fakes import async_client_mock


def make_client() -> BrokerClient:
    return BrokerClient(
        base_url="https://broker.example.com/eva-broker/",
        org_uuid="org-1",
        env_uuid="env-1",
        bot_key="bot-1",
        api_key="api-key",
        channel="LINE2",
    )


class TestConversationUrl:
    def test_scopes_path_by_org_env_and_bot(self):
        url = make_client().conversation_url("S1")
        assert url == "https://broker.example.com/eva-broker/org/org-1/env/env-1/bot/bot-1/conversations/S1"

    def test_new_conversation_has_empty_session_segment(self):
        assert make_client().conversation_url("").endswith("/bot/bot-1/conversations/")


class TestHeaders:
    def test_carries_caller_and_channel_metadata(self):
        headers = make_client().build_headers("U1", "tok")
        assert headers["API-KEY"] == "api-key"
        assert headers["CHANNEL"] == "LINE2"
        assert headers["USER-REF"] == "U1"
        assert headers["LOCALE"] == "es-ES"
        assert headers["Authorization"] == "Bearer tok"

    def test_no_authorization_before_first_token(self):
        assert "Authorization" not in make_client().build_headers("U1", None)


class TestConverse:
    @pytest.mark.asyncio
    @patch("broker_bridge.services.broker_service.httpx.AsyncClient")
    async def test_parses_session_code_and_answers_in_order(self, mock_client_class):
        client = async_client_mock(mock_client_class)
        client.post = AsyncMock(
            return_value=httpx.Response(
                200,
                json={
                    "sessionCode": "S2",
                    "answers": [{"content": "first"}, {"content": "second"}, {"content": "third"}],
                },
            )
        )

        result = await make_client().converse("S1", "U1", "hello", "tok")

        assert result.ok is True
        exchange = result.value
        assert exchange.session_code == "S2"
        assert exchange.request_session_code == "S1"
        assert exchange.answers == ["first", "second", "third"]
        assert exchange.session_changed is True
        args, kwargs = client.post.call_args
        assert args[0].endswith("/conversations/S1")
        assert kwargs["json"] == {"text": "hello"}
        assert kwargs["headers"]["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    @patch("broker_bridge.services.broker_service.httpx.AsyncClient")
    async def test_skips_answers_without_content(self, mock_client_class):
        client = async_client_mock(mock_client_class)
        client.post = AsyncMock(
            return_value=httpx.Response(
                200,
                json={"sessionCode": "S1", "answers": [{"content": "a"}, {"buttons": []}, {"content": "b"}]},
            )
        )

        result = await make_client().converse("S1", "U1", "hello", "tok")

        assert result.value.answers == ["a", "b"]
        assert result.value.session_changed is False

    @pytest.mark.asyncio
    @patch("broker_bridge.services.broker_service.httpx.AsyncClient")
    async def test_401_is_auth_error(self, mock_client_class):
        client = async_client_mock(mock_client_class)
        client.post = AsyncMock(return_value=httpx.Response(401, json={"message": "expired"}))

        result = await make_client().converse("S1", "U1", "hello", "old")

        assert result.error_code == ErrorCode.AUTH
        assert client.post.await_count == 1

    @pytest.mark.asyncio
    @patch("broker_bridge.services.broker_service.httpx.AsyncClient")
    async def test_5xx_is_server_error_with_payload(self, mock_client_class):
        client = async_client_mock(mock_client_class)
        client.post = AsyncMock(return_value=httpx.Response(500, json={"message": "bot crashed"}))

        result = await make_client().converse("S1", "U1", "hello", "tok")

        assert result.error_code == ErrorCode.SERVER
        assert result.detail == {"message": "bot crashed"}
        assert client.post.await_count == 1

    @pytest.mark.asyncio
    @patch("broker_bridge.services.broker_service.httpx.AsyncClient")
    async def test_other_4xx_is_request_error(self, mock_client_class):
        client = async_client_mock(mock_client_class)
        client.post = AsyncMock(return_value=httpx.Response(404, text="not found"))

        result = await make_client().converse("S1", "U1", "hello", "tok")

        assert result.error_code == ErrorCode.REQUEST
        assert result.detail == "not found"

    @pytest.mark.asyncio
    @patch("broker_bridge.services.broker_service.httpx.AsyncClient")
    async def test_network_failure_is_transport_error(self, mock_client_class):
        client = async_client_mock(mock_client_class)
        client.post = AsyncMock(side_effect=httpx.ReadTimeout("timed out"))

        result = await make_client().converse("S1", "U1", "hello", "tok")

        assert result.error_code == ErrorCode.TRANSPORT

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [httpx.TooManyRedirects("too many redirects"), httpx.DecodingError("bad gzip stream")],
        ids=["redirects", "decoding"],
    )
    @patch("broker_bridge.services.broker_service.httpx.AsyncClient")
    async def test_any_request_error_is_transport_error(self, mock_client_class, error):
        client = async_client_mock(mock_client_class)
        client.post = AsyncMock(side_effect=error)

        result = await make_client().converse("S1", "U1", "hello", "tok")

        assert result.ok is False
        assert result.error_code == ErrorCode.TRANSPORT

    @pytest.mark.asyncio
    @patch("broker_bridge.services.broker_service.httpx.AsyncClient")
    async def test_garbage_body_is_invalid_response(self, mock_client_class):
        client = async_client_mock(mock_client_class)
        client.post = AsyncMock(return_value=httpx.Response(200, text="<html>gateway</html>"))

        result = await make_client().converse("S1", "U1", "hello", "tok")

        assert result.error_code == ErrorCode.INVALID_RESPONSE
