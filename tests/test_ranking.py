"""Tests for search confidence, match scoring and rerank."""

import itertools

import pytest

from pill_pipeline.application.services.ranking import (
    ATTRIBUTE_WEIGHTS,
    calculate_search_confidence,
    hint_boost,
    imprint_similarity,
    rank_matches,
    rerank_matches,
    score_match,
)
from pill_pipeline.domain.entities.search import (
    PillRecord,
    RankedMatch,
    SearchQuery,
    SearchResult,
    SecondaryHints,
)


QUERY_VALUES = {
    "shape": "Round",
    "color": "White",
    "front_imprint": "M 367",
    "back_imprint": "10",
    "size_mm": 9.5,
    "scoring": "1 score",
}


@pytest.fixture
def query() -> SearchQuery:
    return SearchQuery(shape="Round", color="White", front_imprint="M 367")


class TestSearchConfidence:
    """The search confidence heuristic."""

    def test_three_attributes_four_results(self, query):
        assert calculate_search_confidence(query, 4) == pytest.approx(0.765)

    @pytest.mark.parametrize("count,expected", [
        (1, 0.935),
        (3, 0.935),
        (4, 0.765),
        (10, 0.765),
        (11, 0.68),
    ])
    def test_result_count_dampening(self, query, count, expected):
        assert calculate_search_confidence(query, count) == pytest.approx(expected)

    def test_no_results_has_no_confidence(self, query):
        assert calculate_search_confidence(query, 0) == 0.0

    def test_scoring_carries_no_weight(self):
        assert calculate_search_confidence(SearchQuery(scoring="1 score"), 5) == pytest.approx(0.27)

    def test_always_in_unit_interval(self):
        names = list(QUERY_VALUES)
        for size in range(len(names) + 1):
            for subset in itertools.combinations(names, size):
                query = SearchQuery(**{name: QUERY_VALUES[name] for name in subset})
                for count in (0, 1, 2, 3, 4, 10, 11, 500):
                    confidence = calculate_search_confidence(query, count)
                    assert 0.0 <= confidence <= 1.0, (subset, count)

    def test_everything_supplied_is_capped(self):
        assert calculate_search_confidence(SearchQuery(**QUERY_VALUES), 1) == 1.0


class TestMatchScoring:
    """Per-record match percentages and imprint similarity."""

    def test_score_counts_only_matched_attributes(self, pill_records, query):
        tylenol, hydrocodone, ibuprofen, metformin = pill_records

        assert score_match(tylenol, query) == pytest.approx(0.7)
        assert score_match(hydrocodone, query) == pytest.approx(0.65)
        assert score_match(ibuprofen, query) == pytest.approx(0.5)
        assert score_match(metformin, query) == pytest.approx(0.85)

    def test_size_within_tolerance(self, pill_records):
        query = SearchQuery(size_mm=11.0)
        tylenol = pill_records[0]

        assert score_match(tylenol, query, size_tolerance_mm=1.0) == pytest.approx(0.3 + ATTRIBUTE_WEIGHTS["size_mm"])
        assert score_match(tylenol, query, size_tolerance_mm=0.5) == pytest.approx(0.3)

    def test_imprint_similarity_ignores_punctuation(self):
        record = PillRecord(id="1", front_imprint="M-367")

        assert imprint_similarity(SearchQuery(front_imprint="m 367"), record) == 1.0

    def test_imprint_similarity_uses_best_face(self):
        record = PillRecord(id="1", front_imprint="WATSON", back_imprint="M367")

        assert imprint_similarity(SearchQuery(back_imprint="M 367"), record) == 1.0

    def test_imprint_similarity_without_query_imprint(self, pill_records):
        assert imprint_similarity(SearchQuery(shape="Round"), pill_records[0]) == 0.0

    def test_rank_order(self, pill_records, query):
        ranked = rank_matches(pill_records, query)

        assert [match.record.id for match in ranked] == ["4", "1", "2", "3"]

    def test_ties_broken_by_imprint_similarity(self):
        records = [
            PillRecord(id="far", shape="Round", front_imprint="A 1"),
            PillRecord(id="near", shape="Round", front_imprint="B 10"),
        ]

        ranked = rank_matches(records, SearchQuery(shape="Round", back_imprint="B 1"))

        assert ranked[0].match_percentage == ranked[1].match_percentage
        assert [match.record.id for match in ranked] == ["near", "far"]


def search_result(records, query=None, scores=None) -> SearchResult:
    scores = scores or [None] * len(records)
    return SearchResult(
        matches=tuple(
            RankedMatch(record=record, match_percentage=score) for record, score in zip(records, scores)
        ),
        confidence=0.5,
        query=query or SearchQuery(),
        search_id="s1",
        session_id="session_1_abc",
    )


class TestRerank:
    """Secondary hints boost and reorder, never filter."""

    @pytest.fixture
    def ranked(self, pill_records, query) -> SearchResult:
        matches = rank_matches(pill_records, query)
        return SearchResult(matches=tuple(matches), confidence=0.765, query=query)

    def test_manufacturer_boost_reorders(self, ranked):
        result = rerank_matches(ranked, SecondaryHints(manufacturer="mallinckrodt"))

        assert result.matched_ids == ["4", "2", "1", "3"]
        boosted = result.matches[1]
        assert boosted.match_percentage == pytest.approx(0.8)
        assert boosted.boost_applied
        assert not result.matches[0].boost_applied

    def test_name_matches_brand_or_generic(self, ranked):
        by_brand = rerank_matches(ranked, SecondaryHints(suspected_name="tylenol"))
        by_generic = rerank_matches(ranked, SecondaryHints(suspected_name="Ibuprofen"))

        assert by_brand.matched_ids[0] == "1"
        assert by_brand.matches[0].match_percentage == pytest.approx(0.9)
        assert dict((m.record.id, m.match_percentage) for m in by_generic.matches)["3"] == pytest.approx(0.7)

    def test_boosts_are_capped(self, ranked):
        result = rerank_matches(
            ranked, SecondaryHints(suspected_name="metformin", manufacturer="Mylan", strength="500 mg")
        )

        assert result.matches[0].record.id == "4"
        assert result.matches[0].match_percentage == 1.0
        assert result.confidence == 1.0

    def test_candidates_preserved(self, ranked):
        result = rerank_matches(ranked, SecondaryHints(strength="500 mg"))

        assert sorted(result.matched_ids) == sorted(ranked.matched_ids)
        assert result.reranked
        assert result.query == ranked.query

    def test_unscored_records_start_at_half(self, pill_records):
        result = rerank_matches(search_result(pill_records), SecondaryHints(manufacturer="Amneal"))

        assert result.matched_ids[0] == "3"
        assert result.matches[0].match_percentage == pytest.approx(0.65)
        assert all(match.match_percentage == 0.5 for match in result.matches[1:])
        assert result.search_id == "s1"
        assert result.session_id == "session_1_abc"

    def test_stable_order_without_hints(self, pill_records):
        result = rerank_matches(search_result(pill_records))

        assert result.matched_ids == ["1", "2", "3", "4"]
        assert result.confidence == 0.5

    def test_empty_result_set(self):
        result = rerank_matches(search_result([]), SecondaryHints(suspected_name="anything"))

        assert result.total_results == 0
        assert result.confidence == 0.0

    def test_hint_boost_sums(self, pill_records):
        tylenol = pill_records[0]

        boost = hint_boost(tylenol, SecondaryHints(suspected_name="acetaminophen", manufacturer="mcneil", strength="500"))

        assert boost == pytest.approx(0.45)
