from __future__ import annotations

import json

from metaedge.domain.models import Article, AuthorRef, Collection, CuratorProfile, MetadataBundle
from metaedge.services import structured_data
from metaedge.transform import fragments


def _article() -> Article:
    return Article(
        uuid="a1",
        title="Deep Work",
        content="Why focus matters",
        target_url="https://example.com/deep-work",
        author=AuthorRef(namespace="alice", username="Alice"),
        like_count=4,
    )


def test_article_graph_has_main_breadcrumb_and_faq(site) -> None:
    bundle = MetadataBundle(
        title="Deep Work",
        description="Focus guide",
        keywords=("focus", "work"),
        author="Alice",
        key_takeaways=("Best for knowledge workers", "Something else"),
        facts=("Fact A", "Fact B"),
        audience="Writers",
    )
    main, crumbs, faq = structured_data.article_graph(_article(), bundle, site)

    assert main["@type"] == "Article"
    assert main["url"] == "https://copus.network/work/a1"
    assert main["keywords"] == "focus, work"
    assert main["abstract"] == "Fact A. Fact B"
    assert main["about"] == "Writers"
    assert main["author"] == {"@type": "Person", "name": "Alice", "url": "https://copus.network/user/alice"}
    assert main["publisher"]["logo"]["url"] == "https://copus.network/logo.png"
    assert main["image"] == "https://copus.network/og-image.jpg"
    assert main["interactionStatistic"][0]["userInteractionCount"] == 4
    assert "datePublished" not in main

    assert [i["position"] for i in crumbs["itemListElement"]] == [1, 2, 3]
    assert crumbs["itemListElement"][2]["item"] == "https://copus.network/work/a1"

    assert faq["@type"] == "FAQPage"
    assert faq["mainEntity"][0]["name"] == "What is Deep Work best for?"
    assert faq["mainEntity"][1]["name"] == "What are the key benefits of Deep Work?"


def test_article_graph_without_takeaways_has_no_faq(site) -> None:
    graph = structured_data.article_graph(_article(), MetadataBundle(title="Deep Work"), site)
    assert [node["@type"] for node in graph] == ["Article", "BreadcrumbList"]


def test_generate_question_patterns() -> None:
    q = structured_data.generate_question
    assert q("Includes offline mode", "X", 0) == "What features does X have?"
    assert q("Costs nothing", "X", 0) == "Is X free to use?"
    assert q("Works on any device", "X", 0) == "How does X work?"
    assert q("Plain statement", "X", 3) == "What makes X unique?"


def test_profile_graph_lists_owned_collections(site) -> None:
    profile = CuratorProfile(namespace="alice", username="Alice", article_count=3, liked_article_count=9)
    collections = [Collection(namespace="tools", name="Tools", article_count=2), Collection(namespace="")]
    bundle = MetadataBundle(title="Alice", schema_type="Person")
    person, crumbs = structured_data.profile_graph(profile, bundle, collections, site)

    assert person["@id"] == "https://copus.network/user/alice#person"
    assert person["owns"]["numberOfItems"] == 1
    assert person["owns"]["itemListElement"][0]["item"]["url"] == "https://copus.network/treasury/tools"
    assert [s["userInteractionCount"] for s in person["interactionStatistic"]] == [3, 9]
    assert crumbs["itemListElement"][-1]["name"] == "Alice"


def test_collection_graph_has_parts(site) -> None:
    collection = Collection(
        namespace="tools",
        name="Tools",
        owner=AuthorRef(namespace="alice", username="Alice"),
        articles=(_article(), Article(uuid="")),
    )
    bundle = MetadataBundle(title="Tools", schema_type="Collection")
    node, crumbs = structured_data.collection_graph(collection, bundle, site)

    assert node["numberOfItems"] == 2
    assert [p["url"] for p in node["hasPart"]] == ["https://copus.network/work/a1"]
    assert node["hasPart"][0]["mainEntityOfPage"] == "https://example.com/deep-work"
    assert [c["name"] for c in crumbs["itemListElement"]] == ["Copus", "Alice", "Tools"]


def test_article_json_document(site) -> None:
    bundle = MetadataBundle(title="Deep Work", description="Focus guide", author="Alice")
    doc = structured_data.article_json(_article(), bundle, site)
    assert doc["id"] == "a1"
    assert doc["originalSource"] == "https://example.com/deep-work"
    assert doc["author"]["url"] == "https://copus.network/user/alice"
    assert doc["stats"] == {"views": 0, "treasures": 4, "comments": 0}
    assert doc["fetchedAt"].endswith("Z")


def test_json_ld_script_cannot_close_the_tag() -> None:
    script = fragments.json_ld_script({"name": "</script><b>x</b> & more"})
    body = script[len('<script type="application/ld+json">') : -len("</script>")]
    assert "</script>" not in body
    assert json.loads(body)["name"] == "</script><b>x</b> & more"


def test_head_omits_absent_values(site) -> None:
    html = fragments.article_head(_article(), MetadataBundle(title="Deep Work"), site)
    assert 'name="description"' not in html
    assert 'name="keywords"' not in html
    assert "article:published_time" not in html
    assert 'content="https://copus.network/og-image.jpg"' in html


def test_head_escapes_text(site) -> None:
    html = fragments.article_head(_article(), MetadataBundle(title='A "quoted" <b> & co'), site)
    assert "<title>A \"quoted\" &lt;b&gt; &amp; co - Copus</title>" in html
    assert "<b>" not in html


def test_home_summary_lists_recent_content(site) -> None:
    html = fragments.home_summary([_article(), Article(uuid="", title="skip")], site)
    assert "https://copus.network/work/a1" in html
    assert "skip" not in html
    assert fragments.HIDDEN_STYLE in html


def test_head_meta_tags_render_in_source_order(site) -> None:
    bundle = MetadataBundle(title="Deep Work", description="Focus guide", keywords=("focus", "work"))
    html = fragments.article_head(_article(), bundle, site)
    assert '<meta name="description" content="Focus guide">' in html
    assert '<meta name="keywords" content="focus, work">' in html
    assert '<meta property="og:type" content="article">' in html
    assert '<meta name="twitter:site" content="@copus_network">' in html
    assert '<link rel="canonical" href="https://copus.network/work/a1">' in html


def test_diagnostic_marker_markup() -> None:
    assert fragments.diagnostic_marker() == '<meta name="seo-worker" content="no-data">'
