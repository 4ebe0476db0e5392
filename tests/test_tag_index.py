from __future__ import annotations

from dataclasses import dataclass

from folio.app.services.tag_index import (
    TagCount,
    TagFacet,
    build_facets,
    count_tags,
    filter_by_tags,
    normalize_tag,
    parse_tag_query,
)


@dataclass(frozen=True)
class _Item:
    name: str
    tags: tuple[str, ...]


ITEMS = [
    _Item("a", ("python", "web")),
    _Item("b", ("python",)),
    _Item("c", ("web", "css")),
    _Item("d", ()),
]


def test_parse_tag_query_sorts_dedupes_and_drops_malformed_tokens() -> None:
    assert parse_tag_query("web, python,web,,Bad Tag,ok-1") == ["ok-1", "python", "web"]


def test_parse_tag_query_is_case_sensitive() -> None:
    assert parse_tag_query("Python,python") == ["python"]


def test_parse_tag_query_decodes_percent_escapes() -> None:
    assert parse_tag_query("python%2Cweb") == ["python", "web"]


def test_parse_tag_query_never_raises_on_bad_input() -> None:
    assert parse_tag_query(None) == []
    assert parse_tag_query("   ") == []
    assert parse_tag_query("%E0%A4%A") == []
    assert parse_tag_query("--,-a,a-,a--b") == []


def test_normalize_tag() -> None:
    assert normalize_tag(" python-3 ") == "python-3"
    assert normalize_tag("UPPER") is None
    assert normalize_tag(7) is None


def test_filter_is_conjunctive_and_preserves_order() -> None:
    assert [item.name for item in filter_by_tags(ITEMS, ["python"])] == ["a", "b"]
    assert [item.name for item in filter_by_tags(ITEMS, ["python", "web"])] == ["a"]
    assert filter_by_tags(ITEMS, ["python", "css"]) == []


def test_empty_or_invalid_selection_returns_everything() -> None:
    assert filter_by_tags(ITEMS, []) == ITEMS
    assert filter_by_tags(ITEMS, ["Not Valid"]) == ITEMS


def test_count_tags_is_sorted_by_tag() -> None:
    assert count_tags(ITEMS) == [
        TagCount(tag="css", count=1),
        TagCount(tag="python", count=2),
        TagCount(tag="web", count=2),
    ]


def test_build_facets_counts_visible_articles_and_keeps_selected() -> None:
    visible = filter_by_tags(ITEMS, ["css"])
    assert build_facets(ITEMS, visible, ["css"]) == [
        TagFacet(tag="css", count=1, selected=True),
        TagFacet(tag="web", count=1, selected=False),
    ]


def test_build_facets_keeps_selected_tag_with_zero_count() -> None:
    visible = filter_by_tags(ITEMS, ["css", "python"])
    assert build_facets(ITEMS, visible, ["css", "python"]) == [
        TagFacet(tag="css", count=0, selected=True),
        TagFacet(tag="python", count=0, selected=True),
    ]


def test_mixed_case_and_punctuated_tokens_are_dropped() -> None:
    assert parse_tag_query("Foo, bar!!, baz") == ["baz"]
