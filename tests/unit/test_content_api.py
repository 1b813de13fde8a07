from __future__ import annotations

import asyncio
import re

import aiohttp
import pytest
from aioresponses import aioresponses

from metaedge.clients.content_api import ContentApiClient
from metaedge.domain.errors import NotFoundError, UpstreamError, UpstreamRejectedError

BASE = "https://api.example.test"


def _url(path: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(BASE + path)}(\?.*)?$")


@pytest.fixture
def client() -> ContentApiClient:
    return ContentApiClient(base_url=BASE + "/", timeout_seconds=2)


async def test_get_content_by_id_parses_article(client: ContentApiClient) -> None:
    payload = {
        "status": 1,
        "data": {
            "uuid": "a1",
            "title": "Deep Work",
            "content": "note",
            "authorInfo": {"namespace": "alice", "username": "Alice", "id": 7},
            "categoryInfo": {"name": "Productivity"},
            "spaceInfo": {"namespace": "tools"},
            "treasureCount": 5,
            "createAt": 1700000000,
        },
    }
    with aioresponses() as m:
        m.get(_url("/client/reader/article/info"), payload=payload)
        article = await client.get_content_by_id("a1")

    assert article.title == "Deep Work"
    assert article.author is not None and article.author.namespace == "alice"
    assert article.author.user_id == 7
    assert article.category == "Productivity"
    assert article.collection_namespace == "tools"
    assert article.like_count == 5


async def test_missing_uuid_is_filled_from_lookup_key(client: ContentApiClient) -> None:
    with aioresponses() as m:
        m.get(_url("/client/reader/article/info"), payload={"status": 1, "data": {"title": "x"}})
        article = await client.get_content_by_id("a9")
    assert article.uuid == "a9"


async def test_empty_data_raises_not_found(client: ContentApiClient) -> None:
    with aioresponses() as m:
        m.get(_url("/client/reader/article/info"), payload={"status": 1, "data": None})
        with pytest.raises(NotFoundError) as exc:
            await client.get_content_by_id("nope")
    assert exc.value.key == "nope"
    assert exc.value.key_name == "id"


async def test_non_success_status_raises_upstream_error(client: ContentApiClient) -> None:
    with aioresponses() as m:
        m.get(_url("/client/userHome/userInfo"), payload={"status": 0, "msg": "error"})
        with pytest.raises(UpstreamError) as exc:
            await client.get_profile_by_namespace("alice")
    assert isinstance(exc.value, UpstreamRejectedError)


async def test_http_error_raises_upstream_error_with_status(client: ContentApiClient) -> None:
    with aioresponses() as m:
        m.get(_url("/client/search"), status=503, body="down")
        with pytest.raises(UpstreamError) as exc:
            await client.search_by_topic("ai")
    assert exc.value.status == 503
    assert not isinstance(exc.value, UpstreamRejectedError)


async def test_non_json_body_raises_upstream_error(client: ContentApiClient) -> None:
    with aioresponses() as m:
        m.get(_url("/client/search"), status=200, body="<html>oops</html>", content_type="text/html")
        with pytest.raises(UpstreamError):
            await client.search_by_topic("ai")


@pytest.mark.parametrize("exception", [asyncio.TimeoutError(), aiohttp.ClientConnectionError("refused")])
async def test_transport_failures_raise_upstream_error(client: ContentApiClient, exception: Exception) -> None:
    with aioresponses() as m:
        m.get(_url("/client/home/pageArticle"), exception=exception)
        with pytest.raises(UpstreamError) as exc:
            await client.list_content_page(1, 100)
    assert exc.value.__cause__ is exception


async def test_collections_accept_nested_and_bare_lists(client: ContentApiClient) -> None:
    item = {"id": 3, "namespace": "tools", "name": "Tools", "spaceType": 1, "articleCount": 2}
    with aioresponses() as m:
        m.get(_url("/client/userHome/pageMySpaces"), payload={"status": 1, "data": {"data": [item]}})
        m.get(_url("/client/userHome/pageMySpaces"), payload={"status": 1, "data": [item, "junk"]})
        nested = await client.get_collections_by_user_id(7)
        bare = await client.get_collections_by_user_id(7)

    assert [c.namespace for c in nested] == ["tools"]
    assert [c.collection_id for c in bare] == [3]
    assert bare[0].space_type == 1


async def test_search_returns_raw_results(client: ContentApiClient) -> None:
    with aioresponses() as m:
        m.get(_url("/client/search"), payload={"status": 1, "data": {"results": [{"uuid": "a1"}, 5]}})
        results = await client.search_by_topic("ai", limit=100)
    assert results == [{"uuid": "a1"}]


async def test_list_content_page_reports_total(client: ContentApiClient) -> None:
    data = {"data": [{"uuid": "a1"}, {"uuid": "a2"}], "totalCount": 2}
    with aioresponses() as m:
        m.get(_url("/client/home/pageArticle"), payload={"status": 1, "data": data})
        page = await client.list_content_page(1, 100)
    assert [i["uuid"] for i in page.items] == ["a1", "a2"]
    assert page.total_count == 2
    assert page.page_index == 1


async def test_collection_lookup_quotes_namespace(client: ContentApiClient) -> None:
    with aioresponses() as m:
        m.get(
            f"{BASE}/client/article/space/info/my%20tools",
            payload={"status": 1, "data": {"id": 4, "name": "My tools"}},
        )
        collection = await client.get_collection_by_namespace("my tools")
    assert collection.namespace == "my tools"
    assert collection.collection_id == 4
