import pytest
from pydantic import ValidationError

from shared.dal.models import GameMode, MetricType
from stats.errors import BadInputError
from stats.types import FinalResult, WordResult, parse_metric, parse_mode


class TestFinalResult:
    def test_best_word_prefers_first_on_ties(self):
        result = FinalResult(
            score=30,
            word_count=3,
            words=(
                WordResult(metric=MetricType.BEST_WORD, word="ZAX", score=12),
                WordResult(metric=MetricType.LONGEST_WORD, word="AXIOMS", score=12),
            ),
        )
        assert result.best_word().word == "ZAX"

    def test_no_words(self):
        assert FinalResult(score=0, word_count=0).best_word() is None

    def test_rejects_negative_score(self):
        with pytest.raises(ValidationError):
            FinalResult(score=-1, word_count=0)

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            FinalResult.model_validate({"score": 1, "word_count": 1, "bonus": 5})

    def test_rejects_empty_word(self):
        with pytest.raises(ValidationError):
            WordResult(metric=MetricType.BEST_WORD, word="", score=1)


class TestParsers:
    def test_parse_mode(self):
        assert parse_mode("free") is GameMode.FREE
        with pytest.raises(BadInputError, match="short, long, free"):
            parse_mode("FREE")

    def test_parse_metric(self):
        assert parse_metric(MetricType.LONGEST_WORD) is MetricType.LONGEST_WORD
        with pytest.raises(BadInputError, match="metric"):
            parse_metric("shortest_word")
