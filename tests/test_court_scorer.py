"""
Tests for CourtScorer in courtbooker/services/court_scorer.py.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from courtbooker.models.schemas import BookingPattern, ScoringWeights
from courtbooker.services.court_scorer import CourtScorer


@pytest.fixture
def scorer() -> CourtScorer:
    return CourtScorer()


def make_pattern(court_id: str, success_rate: float, total_attempts: int = 10) -> BookingPattern:
    return BookingPattern(
        court_id=court_id,
        time_slot="14:00",
        day_of_week=2,
        success_rate=success_rate,
        total_attempts=total_attempts,
    )


class TestComponents:
    """Tests for the individual score components."""

    def test_defaults_for_unknown_available_court(self, scorer: CourtScorer) -> None:
        [score] = scorer.score_courts(["court-1"], ["court-1"], [], "14:00", 2)

        assert score.components.availability == 1.0
        assert score.components.historical == 0.5
        assert score.components.preference == 0.5
        assert score.components.position == 1.0
        assert score.score == pytest.approx(0.75)

    @pytest.mark.parametrize(
        "court_id,expected",
        [("court-1", 1.0), ("court-4", 0.7), ("court-8", 0.3), ("court-12", 0.5), ("center", 0.5)],
    )
    def test_position_score(self, court_id: str, expected: float) -> None:
        assert CourtScorer.position_score(court_id) == pytest.approx(expected)

    def test_preference_score(self) -> None:
        preferred = ["c2", "c1"]

        assert CourtScorer.preference_score("c2", preferred) == pytest.approx(1.0)
        assert CourtScorer.preference_score("c1", preferred) == pytest.approx(0.8)
        assert CourtScorer.preference_score("c3", preferred) == pytest.approx(0.3)
        assert CourtScorer.preference_score("c3", []) == pytest.approx(0.5)

    def test_historical_neutral_below_three_attempts(self, scorer: CourtScorer) -> None:
        scorer.update_pattern("court-1", "14:00", 2, True)
        scorer.update_pattern("court-1", "14:00", 2, True)

        assert scorer.historical_score("court-1", "14:00", 2) == 0.5

    def test_reason_mentions_preference(self, scorer: CourtScorer) -> None:
        [score] = scorer.score_courts(["court-1"], ["court-1"], ["court-1"], "14:00", 2)

        assert score.reason.startswith("Court court-1: available")
        assert "preferred court" in score.reason
        assert "good position" in score.reason


class TestRanking:
    """Tests for ordering and selection."""

    def test_sorted_descending(self, scorer: CourtScorer) -> None:
        scores = scorer.score_courts(
            ["court-3", "court-1", "court-2"], ["court-3", "court-2"], [], "14:00", 2
        )

        assert [s.court_id for s in scores] == ["court-2", "court-3", "court-1"]

    def test_historical_success_is_monotonic(self, scorer: CourtScorer) -> None:
        scorer.load_patterns([make_pattern("court-1", 0.2)])
        low = scorer.score_courts(["court-1"], ["court-1"], [], "14:00", 2)[0].score

        scorer.load_patterns([make_pattern("court-1", 0.9)])
        high = scorer.score_courts(["court-1"], ["court-1"], [], "14:00", 2)[0].score

        assert high > low

    def test_get_best_court_skips_unavailable(self, scorer: CourtScorer) -> None:
        scores = scorer.score_courts(["court-1", "court-2"], ["court-2"], ["court-1"], "14:00", 2)

        assert scorer.get_best_court(scores) == "court-2"

    def test_get_best_court_none_available(self, scorer: CourtScorer) -> None:
        scores = scorer.score_courts(["court-1"], [], [], "14:00", 2)

        assert scorer.get_best_court(scores) is None

    def test_update_weights(self, scorer: CourtScorer) -> None:
        scorer.update_weights(availability=1.0, historical=0.0, preference=0.0, position=0.0)

        [score] = scorer.score_courts(["court-8"], ["court-8"], [], "14:00", 2)

        assert score.score == pytest.approx(1.0)

    def test_custom_weights_at_construction(self) -> None:
        scorer = CourtScorer(ScoringWeights(availability=0.0, historical=0.0, preference=0.0, position=1.0))

        [score] = scorer.score_courts(["court-8"], ["court-8"], [], "14:00", 2)

        assert score.score == pytest.approx(0.3)


class TestPatternLearning:
    """Tests for the online pattern map."""

    def test_running_average(self, scorer: CourtScorer) -> None:
        for outcome in (True, False, True):
            scorer.update_pattern("court-1", "14:00", 2, outcome)

        pattern = scorer.get_pattern("court-1", "14:00", 2)

        assert pattern is not None
        assert pattern.success_rate == pytest.approx(2 / 3)
        assert pattern.total_attempts == 3
        assert scorer.historical_score("court-1", "14:00", 2) == pytest.approx(2 / 3)

    def test_keys_are_independent(self, scorer: CourtScorer) -> None:
        scorer.update_pattern("court-1", "14:00", 2, True)
        scorer.update_pattern("court-1", "14:00", 3, False)

        assert scorer.get_pattern("court-1", "14:00", 2).success_rate == 1.0
        assert scorer.get_pattern("court-1", "14:00", 3).success_rate == 0.0
        assert scorer.get_pattern("court-1", "15:00", 2) is None

    def test_load_replaces_patterns(self, scorer: CourtScorer) -> None:
        scorer.update_pattern("court-9", "09:00", 1, True)

        scorer.load_patterns([make_pattern("court-1", 0.5)])

        assert scorer.get_pattern("court-9", "09:00", 1) is None
        assert len(scorer.export_patterns()) == 1

    def test_export_is_a_snapshot(self, scorer: CourtScorer) -> None:
        scorer.update_pattern("court-1", "14:00", 2, True)

        exported = scorer.export_patterns()
        exported[0].success_rate = 0.0

        assert scorer.get_pattern("court-1", "14:00", 2).success_rate == 1.0

    def test_concurrent_updates_are_not_lost(self, scorer: CourtScorer) -> None:
        def record(_: int) -> None:
            for _ in range(100):
                scorer.update_pattern("court-1", "14:00", 2, True)

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(record, range(4)))

        assert scorer.get_pattern("court-1", "14:00", 2).total_attempts == 400

    def test_statistics(self, scorer: CourtScorer) -> None:
        scorer.load_patterns([make_pattern("court-1", 0.9), make_pattern("court-2", 0.1)])

        stats = scorer.get_statistics()

        assert stats["total_patterns"] == 2
        assert stats["average_success_rate"] == pytest.approx(0.5)
        assert stats["most_successful_court"] == "court-1"
        assert stats["least_successful_court"] == "court-2"

    def test_statistics_empty(self, scorer: CourtScorer) -> None:
        assert scorer.get_statistics()["total_patterns"] == 0

    def test_reset(self, scorer: CourtScorer) -> None:
        scorer.update_pattern("court-1", "14:00", 2, True)

        scorer.reset()

        assert scorer.export_patterns() == []
