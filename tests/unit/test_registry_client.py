"""
Unit tests for the registry client
"""

import pytest
import httpx
from ingestion.clients.registry_client import RegistryClient, default_headers
from ingestion.parser import parse_cadastral_number
from core.exceptions import (
    CadastralObjectNotFoundError,
    NotFoundError,
    RegistryTransportError,
    RegistryResponseError
)

REGISTRY_URL = "https://registry.test/api/geoportal/v2/search/geoportal"


def make_client(transport: httpx.MockTransport) -> RegistryClient:
    return RegistryClient(
        registry_url=REGISTRY_URL,
        thematic_search_id="1",
        timeout=5.0,
        client=httpx.AsyncClient(transport=transport)
    )


class TestRegistryClient:
    """Test registry lookups against a mocked transport"""

    @pytest.mark.asyncio
    async def test_fetch_success(self, registry_transport):
        async with make_client(registry_transport) as client:
            record = await client.fetch(parse_cadastral_number("16:50:11:413"))

        assert record.area == 1250.5
        assert record.right_type == "Собственность"

        assert len(registry_transport.requests) == 1
        request = registry_transport.requests[0]
        assert request.method == "GET"
        assert request.url.params["query"] == "16:50:11:413"
        assert request.url.params["thematicSearchId"] == "1"

    @pytest.mark.asyncio
    async def test_query_drops_leading_zeros(self, registry_transport):
        async with make_client(registry_transport) as client:
            await client.fetch(parse_cadastral_number("16:050:0011:0413"))

        assert registry_transport.requests[0].url.params["query"] == "16:50:11:413"

    @pytest.mark.asyncio
    async def test_fetch_not_found(self, registry_transport):
        async with make_client(registry_transport) as client:
            with pytest.raises(CadastralObjectNotFoundError) as exc_info:
                await client.fetch(parse_cadastral_number("16:50:11:414"))

        assert isinstance(exc_info.value, NotFoundError)
        assert exc_info.value.context["status_code"] == 404

    @pytest.mark.asyncio
    async def test_server_error_is_not_not_found(self, registry_transport):
        async with make_client(registry_transport) as client:
            with pytest.raises(RegistryTransportError) as exc_info:
                await client.fetch(parse_cadastral_number("16:50:11:999"))

        assert not isinstance(exc_info.value, NotFoundError)
        assert exc_info.value.context["status_code"] == 500
        # No internal retry
        assert len(registry_transport.requests) == 1

    @pytest.mark.asyncio
    async def test_timeout_raises_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with make_client(httpx.MockTransport(handler)) as client:
            with pytest.raises(RegistryTransportError) as exc_info:
                await client.fetch(parse_cadastral_number("16:50:11:413"))

        assert exc_info.value.context["timeout"] == 5.0
        assert isinstance(exc_info.value.original_exception, httpx.ReadTimeout)

    @pytest.mark.asyncio
    async def test_connection_error_raises_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(httpx.MockTransport(handler)) as client:
            with pytest.raises(RegistryTransportError):
                await client.fetch(parse_cadastral_number("16:50:11:413"))

    @pytest.mark.asyncio
    async def test_invalid_json_raises_response_error(self):
        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        async with make_client(httpx.MockTransport(handler)) as client:
            with pytest.raises(RegistryResponseError):
                await client.fetch(parse_cadastral_number("16:50:11:413"))

    @pytest.mark.asyncio
    async def test_missing_features_raises_response_error(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"features": []}})

        async with make_client(httpx.MockTransport(handler)) as client:
            with pytest.raises(RegistryResponseError):
                await client.fetch(parse_cadastral_number("16:50:11:413"))

    @pytest.mark.asyncio
    async def test_close_closes_client(self, registry_transport):
        client = make_client(registry_transport)
        await client.close()
        assert client._client.is_closed

    def test_default_headers(self):
        headers = default_headers()
        assert "User-Agent" in headers
        assert "Referer" in headers
