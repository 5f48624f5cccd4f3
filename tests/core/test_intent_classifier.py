"""Tests for the statistical classifier (Tier 2).

Tests cover:
- Unavailable states (no backend, missing or malformed artifact)
- Naive Bayes artifact loading and prediction
- One-shot initialization under concurrency
- Text normalization
"""

from __future__ import annotations

import asyncio
import threading
import time
from pathlib import Path

import pytest

from fastpath.core.intent import (
    ClassifierBackend,
    ClassifierHandle,
    ClassifierState,
    NaiveBayesBackend,
    Ready,
    StatisticalClassifier,
    Unavailable,
)

# =============================================================================
# Fixtures
# =============================================================================


TRAINING_DATA = [
    ("turn the volume up", "system_volume"),
    ("volume louder sound", "system_volume"),
    ("sound down volume", "system_volume"),
    ("wifi network on", "system_wifi"),
    ("enable the wifi network", "system_wifi"),
    ("network wifi off", "system_wifi"),
]


@pytest.fixture
def model_file(tmp_path: Path) -> Path:
    """A fitted CountVectorizer + MultinomialNB pipeline saved with joblib."""
    joblib = pytest.importorskip("joblib")
    pytest.importorskip("sklearn")
    from sklearn.feature_extraction.text import CountVectorizer
    from sklearn.naive_bayes import MultinomialNB
    from sklearn.pipeline import Pipeline

    texts, labels = zip(*TRAINING_DATA)
    pipeline = Pipeline([("vectorizer", CountVectorizer()), ("nb", MultinomialNB())])
    pipeline.fit(list(texts), list(labels))

    path = tmp_path / "intent_model.joblib"
    joblib.dump(pipeline, path)
    return path


class FixedHandle(ClassifierHandle):
    def __init__(self, ranked: list[tuple[str, float]]) -> None:
        self.ranked = ranked

    def predict(self, text: str) -> list[tuple[str, float]]:
        return self.ranked


class CountingBackend(ClassifierBackend):
    """Slow backend that counts how many times it was loaded."""

    def __init__(self) -> None:
        self.loads = 0
        self._lock = threading.Lock()

    def load(self):
        with self._lock:
            self.loads += 1
        time.sleep(0.05)
        return Ready(FixedHandle([("system_volume", 0.9), ("system_wifi", 0.1)]))


class RaisingBackend(ClassifierBackend):
    def load(self):
        raise RuntimeError("disk on fire")


# =============================================================================
# Unavailable Tests
# =============================================================================


class TestUnavailable:
    """The classifier degrades to 'unknown' instead of failing."""

    @pytest.mark.asyncio
    async def test_no_backend(self) -> None:
        classifier = StatisticalClassifier()
        await classifier.initialize()

        assert classifier.state == ClassifierState.UNAVAILABLE
        assert classifier.is_available() is False
        assert "No classifier backend" in classifier.get_error()

    @pytest.mark.asyncio
    async def test_missing_artifact(self, tmp_path: Path) -> None:
        classifier = StatisticalClassifier(NaiveBayesBackend(tmp_path / "missing.joblib"))
        await classifier.initialize()

        assert classifier.is_available() is False
        assert "Model file not found" in classifier.get_error()

        result = await classifier.classify("turn up the volume")
        assert result.intent == "unknown"
        assert result.confidence == 0.0
        assert result.alternatives == []

    @pytest.mark.asyncio
    async def test_malformed_artifact(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.joblib"
        path.write_text("not a pickle")
        classifier = StatisticalClassifier(NaiveBayesBackend(path))
        await classifier.initialize()

        assert classifier.is_available() is False
        assert classifier.get_error()

    @pytest.mark.asyncio
    async def test_not_a_classifier(self, tmp_path: Path) -> None:
        joblib = pytest.importorskip("joblib")
        pytest.importorskip("sklearn")
        path = tmp_path / "settings.joblib"
        joblib.dump({"labels": ["system_volume"]}, path)

        classifier = StatisticalClassifier(NaiveBayesBackend(path))
        await classifier.initialize()

        assert classifier.is_available() is False
        assert "not a fitted classifier" in classifier.get_error()

    @pytest.mark.asyncio
    async def test_backend_exception_converted(self) -> None:
        classifier = StatisticalClassifier(RaisingBackend())
        await classifier.initialize()

        assert classifier.state == ClassifierState.UNAVAILABLE
        assert "disk on fire" in classifier.get_error()

    def test_backend_load_never_raises(self, tmp_path: Path) -> None:
        outcome = NaiveBayesBackend(tmp_path / "missing.joblib").load()
        assert isinstance(outcome, Unavailable)


# =============================================================================
# Naive Bayes Tests
# =============================================================================


class TestNaiveBayes:
    """Tests for the joblib pipeline backend."""

    @pytest.mark.asyncio
    async def test_loads_artifact(self, model_file: Path) -> None:
        classifier = StatisticalClassifier(NaiveBayesBackend(model_file))
        await classifier.initialize()

        assert classifier.state == ClassifierState.READY
        assert classifier.is_available() is True
        assert classifier.get_error() is None

    @pytest.mark.asyncio
    async def test_classifies_confidently(self, model_file: Path) -> None:
        classifier = StatisticalClassifier(NaiveBayesBackend(model_file))

        result = await classifier.classify("Volume, sound!")

        assert result.intent == "system_volume"
        assert result.confidence > 0.9
        assert [label for label, _ in result.alternatives] == ["system_wifi"]

    @pytest.mark.asyncio
    async def test_probabilities_sum_to_one(self, model_file: Path) -> None:
        classifier = StatisticalClassifier(NaiveBayesBackend(model_file))
        result = await classifier.classify("wifi network volume")

        total = result.confidence + sum(score for _, score in result.alternatives)
        assert total == pytest.approx(1.0)
        assert result.intent == "system_wifi"

    @pytest.mark.asyncio
    async def test_out_of_vocabulary(self, model_file: Path) -> None:
        classifier = StatisticalClassifier(NaiveBayesBackend(model_file))
        result = await classifier.classify("write me a poem")

        assert result.intent == "unknown"
        assert result.confidence == 0.0


# =============================================================================
# Lifecycle Tests
# =============================================================================


class TestLifecycle:
    """Tests for one-shot initialization and prediction errors."""

    @pytest.mark.asyncio
    async def test_concurrent_initialize_loads_once(self) -> None:
        backend = CountingBackend()
        classifier = StatisticalClassifier(backend)

        await asyncio.gather(*(classifier.initialize() for _ in range(5)))

        assert backend.loads == 1
        assert classifier.state == ClassifierState.READY

    @pytest.mark.asyncio
    async def test_concurrent_classify_loads_once(self) -> None:
        backend = CountingBackend()
        classifier = StatisticalClassifier(backend)

        results = await asyncio.gather(*(classifier.classify("louder") for _ in range(3)))

        assert backend.loads == 1
        assert all(r.intent == "system_volume" for r in results)

    @pytest.mark.asyncio
    async def test_initialize_idempotent(self) -> None:
        backend = CountingBackend()
        classifier = StatisticalClassifier(backend)

        await classifier.initialize()
        await classifier.initialize()

        assert backend.loads == 1

    @pytest.mark.asyncio
    async def test_alternatives_limited_to_two(self) -> None:
        class FourLabels(ClassifierBackend):
            def load(self):
                return Ready(
                    FixedHandle([("a", 0.4), ("b", 0.3), ("c", 0.2), ("d", 0.1)])
                )

        classifier = StatisticalClassifier(FourLabels())
        result = await classifier.classify("anything")

        assert result.intent == "a"
        assert result.alternatives == [("b", 0.3), ("c", 0.2)]

    @pytest.mark.asyncio
    async def test_predict_error_yields_unknown(self) -> None:
        class Exploding(ClassifierHandle):
            def predict(self, text: str):
                raise RuntimeError("bad matrix")

        class ExplodingBackend(ClassifierBackend):
            def load(self):
                return Ready(Exploding())

        classifier = StatisticalClassifier(ExplodingBackend())
        result = await classifier.classify("volume")

        assert result.intent == "unknown"
        assert result.confidence == 0.0


class TestNormalize:
    """Tests for query normalization."""

    def test_lowercase_and_punctuation(self) -> None:
        assert StatisticalClassifier.normalize("Turn UP the volume!!") == "turn up the volume"

    def test_collapses_whitespace(self) -> None:
        assert StatisticalClassifier.normalize("  wifi,\tnetwork  ") == "wifi network"
