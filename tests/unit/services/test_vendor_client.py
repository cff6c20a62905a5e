"""Unit tests for the vendor API client."""

import httpx
import pytest

from catalog_sync.exceptions import AuthError, FetchError
from catalog_sync.infrastructure.vendor import VendorClient
from catalog_sync.services.category_mapping import CategoryMappingEntry, CategoryMappingService


def make_client(test_settings, handler) -> VendorClient:
    http_client = httpx.AsyncClient(
        base_url=test_settings.vendor_api_base_url,
        transport=httpx.MockTransport(handler),
    )
    return VendorClient(test_settings, http_client=http_client)


INVENTORIES = [
    {
        "name": "Speakers",
        "items": [
            {"id": "SKU1", "name": "Model X", "sellingPrice": "99.5", "stock": 3, "photoIds": ["https://cdn.test/x.jpg", ""]},
            {"id": "SKU2", "name": "Model Y", "sellingPrice": 120, "stock": None, "manage_stock": False},
        ],
    },
    {"name": "Cables", "items": [{"id": "C1", "name": "HDMI", "sellingPrice": 5, "stock": 10}]},
    {"name": "Broken", "items": "not-a-list"},
]


class TestAuthentication:
    """Login against /User/Login."""

    @pytest.mark.asyncio
    async def test_posts_form_credentials(self, test_settings) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = request.content.decode()
            return httpx.Response(200, json={"token": "abc"})

        async with make_client(test_settings, handler) as client:
            assert await client.authenticate() == "abc"

        assert seen["path"] == "/User/Login"
        assert "Email=sync%40example.com" in seen["body"]
        assert "Password=secret" in seen["body"]

    @pytest.mark.asyncio
    async def test_missing_credentials(self, test_settings) -> None:
        settings = test_settings.model_copy(update={"vendor_api_email": ""})
        async with make_client(settings, lambda request: httpx.Response(200)) as client:
            with pytest.raises(AuthError, match="not configured"):
                await client.authenticate()

    @pytest.mark.asyncio
    async def test_rejected_credentials_include_server_message(self, test_settings) -> None:
        handler = lambda request: httpx.Response(401, json={"message": "Invalid password"})
        async with make_client(test_settings, handler) as client:
            with pytest.raises(AuthError, match="Invalid password"):
                await client.authenticate()

    @pytest.mark.asyncio
    async def test_missing_token(self, test_settings) -> None:
        async with make_client(test_settings, lambda request: httpx.Response(200, json={})) as client:
            with pytest.raises(AuthError, match="valid token"):
                await client.authenticate()

    @pytest.mark.asyncio
    async def test_connection_failure(self, test_settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(test_settings, handler) as client:
            with pytest.raises(AuthError, match="Failed to connect"):
                await client.authenticate()

    @pytest.mark.asyncio
    async def test_token_is_cached(self, test_settings) -> None:
        logins = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == VendorClient.LOGIN_PATH:
                logins.append(request)
                return httpx.Response(200, json={"token": "abc"})
            return httpx.Response(200, json=[])

        async with make_client(test_settings, handler) as client:
            await client.fetch_inventories()
            await client.fetch_inventories()

        assert len(logins) == 1

    @pytest.mark.asyncio
    async def test_expired_token_triggers_new_login(self, test_settings) -> None:
        tokens = iter(["first", "second"])
        bearers = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == VendorClient.LOGIN_PATH:
                return httpx.Response(200, json={"token": next(tokens)})
            bearers.append(request.headers["Authorization"])
            return httpx.Response(200, json=[])

        async with make_client(test_settings, handler) as client:
            await client.fetch_inventories()
            # One second past the token lifetime
            client._token_expires -= test_settings.vendor_token_ttl_seconds + 1
            await client.fetch_inventories()

        assert bearers == ["Bearer first", "Bearer second"]


class TestInventories:
    """Fetching /Data/GetAllInventories."""

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, test_settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer t0k"
            return httpx.Response(200, json=INVENTORIES)

        async with make_client(test_settings, handler) as client:
            assert await client.fetch_inventories("t0k") == INVENTORIES

    @pytest.mark.asyncio
    async def test_error_status(self, test_settings) -> None:
        async with make_client(test_settings, lambda request: httpx.Response(503)) as client:
            with pytest.raises(FetchError, match="error code: 503"):
                await client.fetch_inventories("t0k")

    @pytest.mark.asyncio
    async def test_invalid_payload(self, test_settings) -> None:
        handler = lambda request: httpx.Response(200, json={"items": []})
        async with make_client(test_settings, handler) as client:
            with pytest.raises(FetchError, match="invalid data format"):
                await client.fetch_inventories("t0k")

    @pytest.mark.asyncio
    async def test_non_json_payload(self, test_settings) -> None:
        handler = lambda request: httpx.Response(200, text="<html>maintenance</html>")
        async with make_client(test_settings, handler) as client:
            with pytest.raises(FetchError):
                await client.fetch_inventories("t0k")


class TestSyncCandidates:
    """Flattening enabled inventories into candidates."""

    @pytest.mark.asyncio
    async def test_only_enabled_categories_in_api_order(self, test_settings, speakers_mapping) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == VendorClient.LOGIN_PATH:
                return httpx.Response(200, json={"token": "abc"})
            return httpx.Response(200, json=INVENTORIES)

        mapping = {**speakers_mapping, "Broken": CategoryMappingEntry(enabled=True, destination_category_id=1)}
        async with make_client(test_settings, handler) as client:
            candidates = await client.list_sync_candidates(mapping)

        assert [c.sku for c in candidates] == ["SKU1", "SKU2"]
        first, second = candidates
        assert first.price == 99.5
        assert first.stock_quantity == 3
        assert first.stock_managed is True
        assert first.destination_category_id == 5
        assert first.source_category == "Speakers"
        assert first.image_urls == ("https://cdn.test/x.jpg",)
        assert second.stock_quantity is None
        assert second.stock_managed is False

    @pytest.mark.asyncio
    async def test_categories_for_mapping(self, test_settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == VendorClient.LOGIN_PATH:
                return httpx.Response(200, json={"token": "abc"})
            return httpx.Response(200, json=INVENTORIES)

        async with make_client(test_settings, handler) as client:
            categories = await client.get_categories_for_mapping()
            connection = await client.test_connection("other@example.com", "pw")

        assert categories == [
            {"name": "Speakers", "item_count": 2},
            {"name": "Cables", "item_count": 1},
            {"name": "Broken", "item_count": 0},
        ]
        assert connection["success"] is True
        assert connection["categories"] == 3
        assert connection["products"] == 3

    @pytest.mark.asyncio
    async def test_padded_category_names_match_the_stored_mapping(self, test_settings, db_session) -> None:
        inventories = [{"name": " Speakers ", "items": [{"id": "SKU1", "name": "Model X", "sellingPrice": 10}]}]

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == VendorClient.LOGIN_PATH:
                return httpx.Response(200, json={"token": "abc"})
            return httpx.Response(200, json=inventories)

        service = CategoryMappingService(db_session)
        async with make_client(test_settings, handler) as client:
            categories = await client.get_categories_for_mapping()
            refreshed = await service.refresh_from_remote(categories)
            refreshed["Speakers"] = CategoryMappingEntry(enabled=True, destination_category_id=5)
            await service.save_mapping(refreshed)

            candidates = await client.list_sync_candidates(await service.get_mapping())

        assert categories == [{"name": "Speakers", "item_count": 1}]
        assert [c.sku for c in candidates] == ["SKU1"]
        assert candidates[0].source_category == "Speakers"
        assert candidates[0].destination_category_id == 5
