import pytest

from config.settings import RetrievalConfig
from core.retrieve.aggregator import MatchAggregator
from models.chunk import ChunkMatch


def _match(chunk_id, score, parent, index=0, **extra):
    meta = {"parent_id": parent, "chunk_index": index, "title": f"Recipe {parent}"}
    meta.update(extra)
    return ChunkMatch(id=chunk_id, score=score, metadata=meta)


def test_score_is_max_plus_weighted_sum():
    matches = [
        _match("a#c0", 0.9, "a"),
        _match("a#c1", 0.8, "a", index=1),
        _match("b#c0", 0.95, "b"),
    ]
    results = MatchAggregator(RetrievalConfig()).aggregate(matches)

    scores = {r.parent_id: r.score for r in results}
    assert scores["a"] == pytest.approx(0.9 + 0.1 * 1.7)
    assert scores["b"] == pytest.approx(0.95 + 0.1 * 0.95)
    # Two decent chunks beat one slightly better chunk
    assert [r.parent_id for r in results] == ["a", "b"]


def test_every_chunk_lands_in_exactly_one_group():
    matches = [_match(f"{p}#c{i}", 0.1 * (i + 1), p, index=i) for p in "xyz" for i in range(3)]
    results = MatchAggregator().aggregate(matches, top_k_parents=10)

    grouped_ids = [c.id for r in results for c in r.matched_chunks]
    assert sorted(grouped_ids) == sorted(m.id for m in matches)
    assert len(results) == 3


def test_aggregation_is_deterministic():
    matches = [_match("p#c0", 0.4, "p"), _match("q#c0", 0.4, "q"), _match("r#c0", 0.7, "r")]
    aggregator = MatchAggregator()
    first = aggregator.aggregate(matches)
    second = aggregator.aggregate(list(matches))

    assert [(r.parent_id, r.score) for r in first] == [(r.parent_id, r.score) for r in second]
    # Equal scores keep first-seen order
    assert [r.parent_id for r in first] == ["r", "p", "q"]


def test_instructions_are_rebuilt_in_chunk_order():
    matches = [
        _match("s#c2", 0.9, "s", index=2, instructions="Serve hot."),
        _match("s#c0", 0.3, "s", index=0, instructions="Boil water."),
        _match("s#c1", 0.6, "s", index=1, instructions="Add pasta."),
    ]
    result = MatchAggregator().aggregate(matches)[0]

    assert result.instructions == "Boil water. Add pasta. Serve hot."
    # matched chunks stay in score order
    assert [c.id for c in result.matched_chunks] == ["s#c2", "s#c1", "s#c0"]


def test_alternate_parent_keys_and_unknown_bucket():
    matches = [
        ChunkMatch(id="1", score=0.5, metadata={"parentId": "camel"}),
        ChunkMatch(id="2", score=0.4, metadata={"parent": "short"}),
        ChunkMatch(id="3", score=0.3, metadata={}),
        ChunkMatch(id="4", score=0.2, metadata={"foo": "bar"}),
    ]
    results = MatchAggregator().aggregate(matches)
    by_parent = {r.parent_id: r for r in results}

    assert set(by_parent) == {"camel", "short", "unknown"}
    assert len(by_parent["unknown"].matched_chunks) == 2


def test_snippet_and_recipe_id():
    long_text = "word " * 100
    matches = [_match("t#c0", 0.8, "t", recipeId="uuid-t", instructions=long_text)]
    result = MatchAggregator().aggregate(matches)[0]

    assert result.recipe_id == "uuid-t"
    assert result.snippet.startswith("Recipe t — word")
    assert len(result.snippet) == len("Recipe t — ") + 160


def test_explicit_snippet_wins():
    matches = [_match("u#c0", 0.8, "u", snippet="Hand-written teaser", instructions="ignored")]
    assert MatchAggregator().aggregate(matches)[0].snippet == "Recipe u — Hand-written teaser"


def test_top_k_parents_and_empty_input():
    matches = [_match(f"{i}#c0", i / 10, str(i)) for i in range(1, 8)]
    results = MatchAggregator().aggregate(matches, top_k_parents=3)

    assert [r.parent_id for r in results] == ["7", "6", "5"]
    assert MatchAggregator().aggregate([]) == []
