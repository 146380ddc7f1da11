"""Tests for the Gemini model gateway (threadkeep/integrations/gemini.py)."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from threadkeep.integrations.gemini import ERROR_PREFIX, GeminiClient, is_error


def _response(status: int, body: dict | None = None, text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    if body is None:
        resp.json.side_effect = ValueError("not json")
    else:
        resp.json.return_value = body
    return resp


class TestGenerate:
    async def test_returns_first_candidate_text(self):
        client = GeminiClient("key", "gemini-test")
        body = {"candidates": [{"content": {"parts": [{"text": "**SUMMARY**: ok"}]}}]}

        with patch.object(client._client, "post", new_callable=AsyncMock, return_value=_response(200, body)) as post:
            text = await client.generate("hello")

        assert text == "**SUMMARY**: ok"
        assert post.call_args.args[0] == "/models/gemini-test:generateContent"
        assert post.call_args.kwargs["params"] == {"key": "key"}
        assert post.call_args.kwargs["json"] == {"contents": [{"parts": [{"text": "hello"}]}]}
        await client.close()

    async def test_http_error_status(self):
        client = GeminiClient("key", "gemini-test")
        with patch.object(client._client, "post", new_callable=AsyncMock, return_value=_response(500, {}, "boom")):
            text = await client.generate("hello")
        assert text == f"{ERROR_PREFIX} API call failed."
        assert is_error(text)
        await client.close()

    async def test_no_candidates(self):
        client = GeminiClient("key", "gemini-test")
        with patch.object(client._client, "post", new_callable=AsyncMock, return_value=_response(200, {"candidates": []})):
            text = await client.generate("hello")
        assert text == f"{ERROR_PREFIX} API returned no content."
        await client.close()

    async def test_unreadable_body(self):
        client = GeminiClient("key", "gemini-test")
        with patch.object(client._client, "post", new_callable=AsyncMock, return_value=_response(200, None)):
            assert is_error(await client.generate("hello"))
        await client.close()

    async def test_transport_failure(self):
        client = GeminiClient("key", "gemini-test")
        with patch.object(
            client._client, "post", new_callable=AsyncMock, side_effect=httpx.ConnectError("down")
        ):
            text = await client.generate("hello")
        assert text == f"{ERROR_PREFIX} Could not connect to Gemini API."
        await client.close()

    async def test_missing_model(self):
        async with GeminiClient("key", "") as client:
            with patch.object(client._client, "post", new_callable=AsyncMock) as post:
                text = await client.generate("hello")
        assert is_error(text)
        post.assert_not_called()


class TestIsError:
    def test_sentinel(self):
        assert is_error("Error: anything") is True
        assert is_error("**SUMMARY**: Error: in text") is False
        assert is_error("") is False
