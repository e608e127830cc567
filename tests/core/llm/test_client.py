import json

import httpx
import pytest
import pytest_asyncio
import respx
from httpx import Response

from llama_console.llm.client import LlamaClient, build_chat_payload

BASE_URL = "http://127.0.0.1:19390"


@pytest_asyncio.fixture
async def client():
    llama_client = LlamaClient(BASE_URL)
    yield llama_client
    await llama_client.aclose()


def test_build_chat_payload():
    assert build_chat_payload("local", "hi") == {
        "model": "local",
        "messages": [
            {"role": "system", "content": "Short answer"},
            {"role": "user", "content": "hi"},
        ],
    }


@pytest.mark.asyncio
async def test_check_health_returns_raw_body(client):
    async with respx.mock:
        route = respx.get(f"{BASE_URL}/v1/health").mock(return_value=Response(200, text='{"status":"ok"}'))

        body = await client.check_health()

        assert body == '{"status":"ok"}'
        assert route.called


@pytest.mark.asyncio
async def test_check_health_raises_on_server_error(client):
    async with respx.mock:
        respx.get(f"{BASE_URL}/v1/health").mock(return_value=Response(500, text='{"status":"ok"}'))

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await client.check_health()

        assert exc_info.value.response.status_code == 500


@pytest.mark.asyncio
async def test_check_health_connection_error(client):
    async with respx.mock:
        respx.get(f"{BASE_URL}/v1/health").mock(side_effect=httpx.ConnectError("Connection refused"))

        with pytest.raises(httpx.HTTPError):
            await client.check_health()


@pytest.mark.asyncio
async def test_create_chat_completion_request(client):
    raw = '{"choices":[{"message":{"role":"assistant","content":"Hello!"}}]}'
    async with respx.mock:
        route = respx.post(f"{BASE_URL}/v1/chat/completions").mock(return_value=Response(200, text=raw))

        result = await client.create_chat_completion("local", "hi")

        assert result == raw
        request = route.calls.last.request
        assert request.headers["content-type"] == "application/json"
        assert json.loads(request.content) == {
            "model": "local",
            "messages": [
                {"role": "system", "content": "Short answer"},
                {"role": "user", "content": "hi"},
            ],
        }


@pytest.mark.asyncio
async def test_create_chat_completion_keeps_body_on_error(client):
    async with respx.mock:
        respx.post(f"{BASE_URL}/v1/chat/completions").mock(
            return_value=Response(400, text='{"error":"bad request"}')
        )

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await client.create_chat_completion("local", "")

        assert exc_info.value.response.text == '{"error":"bad request"}'


@pytest.mark.asyncio
async def test_custom_system_prompt_and_trailing_slash():
    async with respx.mock:
        route = respx.post(f"{BASE_URL}/v1/chat/completions").mock(return_value=Response(200, text="{}"))

        async with LlamaClient(BASE_URL + "/", system_prompt="Be brief") as llama_client:
            assert llama_client.base_url == BASE_URL
            await llama_client.create_chat_completion("local", "hi")

        payload = json.loads(route.calls.last.request.content)
        assert payload["messages"][0] == {"role": "system", "content": "Be brief"}


@pytest.mark.asyncio
async def test_client_is_reused_across_calls(client):
    async with respx.mock:
        respx.get(f"{BASE_URL}/v1/health").mock(return_value=Response(200, text="{}"))
        respx.post(f"{BASE_URL}/v1/chat/completions").mock(return_value=Response(200, text="{}"))

        http_client = client._client
        await client.check_health()
        await client.create_chat_completion("local", "one")
        await client.create_chat_completion("local", "two")

        assert client._client is http_client
        assert not http_client.is_closed


@pytest.mark.asyncio
async def test_no_timeout_by_default(client):
    assert client._client.timeout == httpx.Timeout(None)
