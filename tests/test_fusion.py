from __future__ import annotations

import pytest

from adaptive_rag.fusion import ReciprocalRankFusion, fuse
from adaptive_rag.models import RetrievedItem
from adaptive_rag.ports import coerce_items


def _items(*ids: str, source: str = "vector") -> list[RetrievedItem]:
    return [RetrievedItem(id=i, content=f"passage {i}", score=0.5, source=source) for i in ids]


def test_worked_example_scores_and_tie_order():
    a = _items("1", "2", "3")
    b = _items("2", "1", "4", source="keyword")

    fused = fuse([a, b], k=60)

    assert [item.id for item in fused] == ["1", "2", "3", "4"]
    assert fused[0].score == pytest.approx(1 / 61 + 1 / 62)
    assert fused[1].score == pytest.approx(1 / 62 + 1 / 61)
    assert fused[2].score == pytest.approx(1 / 63)
    assert fused[3].score == pytest.approx(1 / 63)


def test_fusion_is_deterministic():
    lists = [_items("x", "y", "z"), _items("z", "w"), _items("y")]

    first = fuse(lists)
    second = fuse(lists)

    assert [(i.id, i.score) for i in first] == [(i.id, i.score) for i in second]


def test_single_list_keeps_order_and_rescores():
    ranked = _items("a", "b", "c", "d")

    fused = fuse([ranked])

    assert [item.id for item in fused] == ["a", "b", "c", "d"]
    scores = [item.score for item in fused]
    assert scores == sorted(scores, reverse=True)
    assert scores[0] == pytest.approx(1 / 61)


def test_no_lists_returns_empty():
    assert fuse([]) == []
    assert fuse([[], []]) == []


def test_input_items_are_not_mutated():
    ranked = _items("a", "b")

    fuse([ranked, ranked])

    assert [item.score for item in ranked] == [0.5, 0.5]


def test_item_seen_in_more_lists_outranks_single_hit():
    fused = fuse([_items("solo", "shared"), _items("shared")])

    assert fused[0].id == "shared"


def test_non_positive_k_is_rejected():
    with pytest.raises(ValueError):
        ReciprocalRankFusion(k=0)
    with pytest.raises(ValueError):
        fuse([_items("a")], k=-5)


def test_limit_caps_output():
    fused = ReciprocalRankFusion(limit=2).fuse([_items("a", "b", "c")])

    assert [item.id for item in fused] == ["a", "b"]


def test_fuse_named_records_sources():
    fusion = ReciprocalRankFusion()

    fused = fusion.fuse_named([
        ("vector", _items("a", "b")),
        ("keyword", _items("b", "c")),
    ])

    by_id = {item.id: item for item in fused}
    assert by_id["b"].metadata["fused_from"] == ["vector", "keyword"]
    assert by_id["a"].metadata["fused_from"] == ["vector"]
    assert by_id["c"].metadata["fused_from"] == ["keyword"]


def test_integer_ids_from_backends_fuse_like_strings():
    vector = coerce_items([{"id": 1, "content": "one"}, {"id": 2, "content": "two"}])
    keyword = coerce_items([{"id": 2, "content": "two"}, {"id": 0, "content": "zero"}])

    fused = fuse([vector, keyword])

    assert [item.id for item in fused] == ["2", "1", "0"]
    assert fused[0].score == pytest.approx(1 / 61 + 1 / 62)


def test_zero_id_is_kept():
    item = RetrievedItem(id=0, content="zero")

    assert item.id == "0"
    assert RetrievedItem(content="zero").id != "0"
