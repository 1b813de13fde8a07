from __future__ import annotations

import json

import pytest
from conftest import FakeContentApi

from metaedge.domain.errors import UpstreamError, UpstreamRejectedError, ValidationError
from metaedge.services.discovery_service import DiscoveryService, parse_limit, relevance_score


def _hit(uuid: str, namespace: str | None, **extra) -> dict:
    hit = {"uuid": uuid, "title": f"Title {uuid}", **extra}
    if namespace is not None:
        hit["authorInfo"] = {"namespace": namespace, "username": namespace.title()}
    return hit


def _service(api: FakeContentApi, site, **kwargs) -> DiscoveryService:
    return DiscoveryService(api, site, **kwargs)


async def test_blank_topic_is_rejected_with_examples(site) -> None:
    api = FakeContentApi()
    with pytest.raises(ValidationError) as exc:
        await _service(api, site).discover("   ")
    assert exc.value.examples
    assert exc.value.usage
    assert api.calls == []


async def test_zero_matches_render_empty_item_list(site) -> None:
    service = _service(FakeContentApi(search_results=[]), site)
    rendered = service.render(await service.discover("nothing"))
    assert rendered["@type"] == "ItemList"
    assert rendered["numberOfItems"] == 0
    assert rendered["itemListElement"] == []
    assert rendered["totalMatches"] == 0


async def test_ranking_and_relevance_scores(site) -> None:
    hits = [_hit("1", "alice"), _hit("2", "bob"), _hit("3", "alice")]
    result = await _service(FakeContentApi(search_results=hits), site).discover("ai")
    assert [c.aggregate.namespace for c in result.curators] == ["alice", "bob"]
    assert [c.relevance_score for c in result.curators] == [0.67, 0.33]
    assert result.total_results == 3


async def test_ties_keep_first_encountered_order(site) -> None:
    hits = [_hit("1", "carol"), _hit("2", "alice"), _hit("3", "bob")]
    result = await _service(FakeContentApi(search_results=hits), site).discover("ai")
    assert [c.aggregate.namespace for c in result.curators] == ["carol", "alice", "bob"]


async def test_hits_without_author_are_skipped_and_duplicates_counted_once(site) -> None:
    hits = [_hit("1", None), _hit("2", "alice"), _hit("2", "alice"), {"title": "no author"}]
    result = await _service(FakeContentApi(search_results=hits), site).discover("ai")
    assert result.total_curators == 1
    assert result.curators[0].aggregate.matching_count == 1


async def test_limit_truncates_and_only_retained_curators_are_enriched(site) -> None:
    hits = [_hit(str(i), f"user{i}") for i in range(30)]
    api = FakeContentApi(search_results=hits)
    result = await _service(api, site).discover("ai", "50")
    assert len(result.curators) == 20
    assert result.total_curators == 30
    assert len(api.called("get_profile_by_namespace")) == 20
    assert api.called("search_by_topic") == [("ai", 100, 0)]


def test_parse_limit() -> None:
    assert parse_limit(None) == 10
    assert parse_limit("abc") == 10
    assert parse_limit("0") == 1
    assert parse_limit("-3") == 1
    assert parse_limit("7") == 7
    assert parse_limit("500") == 20


def test_relevance_score_rounds_half_up() -> None:
    assert relevance_score(1, 8) == 0.13
    assert relevance_score(2, 3) == 0.67
    assert relevance_score(0, 0) == 0.0


async def test_failed_enrichment_degrades_single_curator(site) -> None:
    hits = [_hit("1", "alice"), _hit("2", "bob")]
    api = FakeContentApi(search_results=hits, profiles={"bob": {"id": 2, "username": "Bob", "bio": "hi"}})
    result = await _service(api, site).discover("ai")
    alice, bob = result.curators
    assert alice.profile is None
    assert alice.collections == ()
    assert bob.profile is not None and bob.profile.bio == "hi"


async def test_matching_collections_relevant_first(site) -> None:
    collections = [
        {"id": 1, "namespace": "misc", "name": "Misc", "articleCount": 3},
        {"id": 2, "namespace": "empty", "name": "Empty", "articleCount": 0},
        {"id": 3, "namespace": "ai-tools", "name": "AI Tools", "articleCount": 0},
        {
            "id": 4,
            "namespace": "default",
            "name": "ignored",
            "spaceType": 1,
            "articleCount": 1,
            "seoDataByAi": json.dumps({"keyThemes": ["Applied AI"], "keywords": ["llm"]}),
        },
    ]
    api = FakeContentApi(
        search_results=[_hit("1", "alice")],
        profiles={"alice": {"id": 9, "username": "Alice"}},
        collections_by_user={9: collections},
    )
    result = await _service(api, site).discover("AI")
    names = [(c.namespace, c.name, c.is_relevant) for c in result.curators[0].collections]
    assert names == [
        ("ai-tools", "AI Tools", True),
        ("default", "Alice's Treasury", True),
        ("misc", "Misc", False),
    ]
    assert result.curators[0].collections[1].key_themes == ("Applied AI",)


async def test_unreachable_search_propagates(site) -> None:
    api = FakeContentApi(errors={"search_by_topic": UpstreamError("content_api_unreachable")})
    with pytest.raises(UpstreamError):
        await _service(api, site).discover("ai")


async def test_rejected_search_reads_as_no_matches(site) -> None:
    api = FakeContentApi(errors={"search_by_topic": UpstreamRejectedError("content_api_status_not_ok")})
    service = _service(api, site)
    rendered = service.render(await service.discover("ai"))
    assert rendered["numberOfItems"] == 0
    assert rendered["itemListElement"] == []
    assert api.called("get_profile_by_namespace") == []


async def test_render_curator_item(site) -> None:
    hits = [
        _hit("1", "alice", categoryInfo={"name": "Tech"}, keywords=["k1", "k2"]),
        _hit("2", "alice", category="Art", keywords=["k2", "k3"]),
        _hit("3", "alice", category="Tech"),
        _hit("4", "alice"),
    ]
    api = FakeContentApi(search_results=hits, profiles={"alice": {"id": 9, "username": "Alice", "statistics": {"articleCount": 12}}})
    service = _service(api, site)
    rendered = service.render(await service.discover("ai"))

    item = rendered["itemListElement"][0]
    assert item["position"] == 1
    person = item["item"]
    assert person["url"] == "https://copus.network/user/alice"
    assert person["stats"] == {"totalCurations": 12, "matchingCurations": 4, "relevanceScore": 1.0}
    assert person["topCategories"] == [{"name": "Tech", "count": 2}, {"name": "Art", "count": 1}]
    assert person["keywords"] == ["k1", "k2", "k3"]
    assert len(person["sampleCurations"]) == 3
    assert rendered["_aiHints"]["relatedEndpoints"]["sitemap"] == "https://copus.network/sitemap.xml"
