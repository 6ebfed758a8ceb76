# ─────────────────────────────────────────────────────────────────────────────
# Tests for ChatCompletionClient — real httpx client, transport mocked by respx
# ─────────────────────────────────────────────────────────────────────────────

import json

import httpx
import pytest
from pydantic import SecretStr

from copysmith.exceptions import (
    ConfigurationError,
    UpstreamError,
    UpstreamHTTPError,
    UpstreamTimeoutError,
)
from copysmith.services.upstream import MAX_TOKENS, SYSTEM_PROMPT, ChatCompletionClient, message_text

COMPLETIONS_URL = "https://upstream.test/chat/completions"


@pytest.fixture
async def http():
    async with httpx.AsyncClient() as client:
        yield client


def _client(http: httpx.AsyncClient, api_key: str = "sk-test") -> ChatCompletionClient:
    # Trailing slash is trimmed before the path is appended
    return ChatCompletionClient(
        http,
        base_url="https://upstream.test/",
        api_key=SecretStr(api_key),
        model="deepseek-chat",
    )


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


# ── Request shape ────────────────────────────────────────────────────────────


class TestRequest:
    async def test_posts_chat_completion(self, http, respx_mock) -> None:
        route = respx_mock.post(COMPLETIONS_URL).mock(
            return_value=httpx.Response(200, json=_completion('{"description": "x"}'))
        )

        text = await _client(http).complete("PROMPT")

        assert text == '{"description": "x"}'
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert json.loads(request.content) == {
            "model": "deepseek-chat",
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": "PROMPT"},
            ],
            "temperature": 0.7,
            "max_tokens": MAX_TOKENS,
        }

    async def test_missing_key_raises_before_any_request(self, http, respx_mock) -> None:
        with pytest.raises(ConfigurationError, match="DEEPSEEK_API_KEY"):
            await _client(http, api_key="").complete("PROMPT")
        assert not respx_mock.calls


# ── Failures ─────────────────────────────────────────────────────────────────


class TestFailures:
    async def test_non_success_status(self, http, respx_mock) -> None:
        respx_mock.post(COMPLETIONS_URL).mock(return_value=httpx.Response(500, text="overloaded"))

        with pytest.raises(UpstreamHTTPError) as exc_info:
            await _client(http).complete("PROMPT")

        assert exc_info.value.upstream_status == 500
        assert exc_info.value.body == "overloaded"
        assert exc_info.value.message == "Upstream HTTP 500: overloaded"

    async def test_client_timeout_maps_to_timeout_error(self, http, respx_mock) -> None:
        respx_mock.post(COMPLETIONS_URL).mock(side_effect=httpx.ReadTimeout("slow"))
        with pytest.raises(UpstreamTimeoutError):
            await _client(http).complete("PROMPT")

    async def test_transport_error(self, http, respx_mock) -> None:
        respx_mock.post(COMPLETIONS_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(UpstreamError, match="Upstream transport error: ConnectError") as exc_info:
            await _client(http).complete("PROMPT")

        assert not isinstance(exc_info.value, UpstreamTimeoutError)


# ── Text fallbacks ───────────────────────────────────────────────────────────


class TestTextFallbacks:
    async def test_non_json_body_returned_raw(self, http, respx_mock) -> None:
        respx_mock.post(COMPLETIONS_URL).mock(
            return_value=httpx.Response(200, text='plain {"description": "y"}')
        )
        assert await _client(http).complete("PROMPT") == 'plain {"description": "y"}'

    def test_legacy_text_field(self) -> None:
        assert message_text({"choices": [{"text": "hello"}]}) == "hello"

    def test_empty_content_falls_through_to_text(self) -> None:
        payload = {"choices": [{"message": {"content": ""}, "text": "fallback"}]}
        assert message_text(payload) == "fallback"

    def test_unknown_shape_dumped_as_json(self) -> None:
        assert message_text({"result": {"a": 1}}) == '{"result": {"a": 1}}'

    def test_no_choices(self) -> None:
        assert message_text({"choices": []}) == '{"choices": []}'

    def test_string_message_dumped_as_json(self) -> None:
        payload = {"choices": [{"message": "plain string reply"}]}
        assert message_text(payload) == json.dumps(payload)

    def test_choices_mapping_dumped_as_json(self) -> None:
        payload = {"choices": {"0": {"text": "x"}}}
        assert message_text(payload) == json.dumps(payload)

    def test_non_dict_choice_dumped_as_json(self) -> None:
        assert message_text({"choices": ["x"]}) == '{"choices": ["x"]}'

    async def test_odd_payload_shape_returns_dump(self, http, respx_mock) -> None:
        payload = {"choices": [{"message": "plain string reply"}]}
        respx_mock.post(COMPLETIONS_URL).mock(return_value=httpx.Response(200, json=payload))
        assert await _client(http).complete("PROMPT") == json.dumps(payload)
