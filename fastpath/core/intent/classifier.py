"""Statistical intent classification for fastpath (Tier 2).

Wraps a pre-fitted scikit-learn naive Bayes pipeline saved with joblib.
The model is optional: when the artifact is missing, scikit-learn is not
installed, or the artifact is not a fitted classifier, the classifier settles
into an unavailable state and every classification returns a zero-confidence
``unknown`` result.

Usage:
    classifier = StatisticalClassifier(NaiveBayesBackend(model_path))
    await classifier.initialize()

    result = await classifier.classify("turn the sound down a bit")
    print(result.intent, result.confidence)
"""

from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Union

from .taxonomy import ClassificationResult

logger = logging.getLogger(__name__)

# Number of runner-up labels reported alongside the top prediction
MAX_ALTERNATIVES = 2


# Exceptions
class ClassifierError(Exception):
    """Base exception for classifier backend errors."""

    pass


class ModelLoadError(ClassifierError):
    """Model artifact is missing or malformed."""

    pass


class DependencyError(ClassifierError):
    """Required dependency not installed."""

    pass


class ClassifierHandle(ABC):
    """A loaded model that ranks labels for normalized text."""

    @abstractmethod
    def predict(self, text: str) -> list[tuple[str, float]]:
        """Return (label, probability) pairs, best first.

        An empty list means the model has no evidence for any label.
        """


@dataclass(frozen=True)
class Ready:
    """Backend loaded successfully."""

    handle: ClassifierHandle


@dataclass(frozen=True)
class Unavailable:
    """Backend could not be loaded."""

    reason: str


LoadOutcome = Union[Ready, Unavailable]


class ClassifierBackend(ABC):
    """Loads a classifier model once at start-up.

    ``load()`` is blocking and runs in a worker thread. It must report
    problems as ``Unavailable`` instead of raising.
    """

    @abstractmethod
    def load(self) -> LoadOutcome:
        """Load the model and report the outcome."""


class PipelineModel(ClassifierHandle):
    """A fitted scikit-learn text pipeline, e.g. CountVectorizer + MultinomialNB."""

    def __init__(self, pipeline: Any) -> None:
        self.pipeline = pipeline
        self.labels = [str(label) for label in pipeline.classes_]

    def predict(self, text: str) -> list[tuple[str, float]]:
        if not text:
            return []

        # A query with no known tokens would only echo the class priors
        steps = getattr(self.pipeline, "steps", None)
        if steps and len(steps) > 1:
            features = self.pipeline[:-1].transform([text])
            if getattr(features, "nnz", 1) == 0:
                return []

        probabilities = self.pipeline.predict_proba([text])[0]
        ranked = sorted(zip(self.labels, probabilities), key=lambda pair: pair[1], reverse=True)
        return [(label, float(probability)) for label, probability in ranked]


class NaiveBayesBackend(ClassifierBackend):
    """Loads a pre-fitted naive Bayes pipeline saved with joblib.

    The artifact is produced offline, for example::

        pipeline = Pipeline([("vectorizer", CountVectorizer()), ("nb", MultinomialNB())])
        pipeline.fit(utterances, intents)
        joblib.dump(pipeline, "intent_model.joblib")

    joblib artifacts are pickles: only load models you trust.
    """

    def __init__(self, model_path: Path) -> None:
        self.model_path = Path(model_path).expanduser()

    def load(self) -> LoadOutcome:
        try:
            return Ready(self._load_model())
        except ClassifierError as e:
            return Unavailable(str(e))

    def _load_model(self) -> PipelineModel:
        if not self.model_path.exists():
            raise ModelLoadError(
                f"Model file not found: {self.model_path}. Train and export a model first."
            )

        try:
            import joblib
            import sklearn  # noqa: F401
        except ImportError as e:
            raise DependencyError(
                "scikit-learn is not installed. Install with: pip install 'fastpath[ml]'"
            ) from e

        try:
            pipeline = joblib.load(self.model_path)
        except Exception as e:
            raise ModelLoadError(f"Failed to load model {self.model_path}: {e}") from e

        if not hasattr(pipeline, "predict_proba") or not hasattr(pipeline, "classes_"):
            raise ModelLoadError(
                f"Failed to load model {self.model_path}: not a fitted classifier pipeline"
            )

        return PipelineModel(pipeline)


class ClassifierState(str, Enum):
    """Lifecycle of the statistical classifier."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    UNAVAILABLE = "unavailable"


class StatisticalClassifier:
    """Optional statistical tier with a one-shot, shared model load.

    Attributes:
        backend: Backend that loads the model (None means always unavailable)
    """

    def __init__(self, backend: ClassifierBackend | None = None) -> None:
        self.backend = backend
        self._state = ClassifierState.UNINITIALIZED
        self._handle: ClassifierHandle | None = None
        self._error: str | None = None
        self._load_task: asyncio.Future[LoadOutcome] | None = None

    @property
    def state(self) -> ClassifierState:
        return self._state

    async def initialize(self) -> None:
        """Load the backend model.

        Idempotent and safe to call from concurrent tasks: the first caller
        starts the load and every caller awaits the same task.
        """
        if self._state in (ClassifierState.READY, ClassifierState.UNAVAILABLE):
            return

        if self._load_task is None:
            self._state = ClassifierState.INITIALIZING
            self._load_task = asyncio.ensure_future(self._load())

        await asyncio.shield(self._load_task)

    async def _load(self) -> LoadOutcome:
        if self.backend is None:
            outcome: LoadOutcome = Unavailable("No classifier backend configured")
        else:
            loop = asyncio.get_running_loop()
            try:
                outcome = await loop.run_in_executor(None, self.backend.load)
            except Exception as e:
                outcome = Unavailable(f"Failed to load model: {e}")

        if isinstance(outcome, Ready):
            self._handle = outcome.handle
            self._state = ClassifierState.READY
            logger.info("Statistical classifier ready")
        else:
            self._error = outcome.reason
            self._state = ClassifierState.UNAVAILABLE
            logger.warning(f"Statistical classification disabled: {outcome.reason}")

        return outcome

    def is_available(self) -> bool:
        """Check if the model is loaded and usable."""
        return self._state is ClassifierState.READY and self._handle is not None

    def get_error(self) -> str | None:
        """Return the reason the classifier is unavailable, if any."""
        return self._error

    async def classify(self, query: str) -> ClassificationResult:
        """Classify a query.

        Never raises. Returns ``ClassificationResult.unknown()`` when the model
        is unavailable or has no evidence for the query.

        Args:
            query: User input text

        Returns:
            ClassificationResult with the top label and up to two alternatives
        """
        if self._state in (ClassifierState.UNINITIALIZED, ClassifierState.INITIALIZING):
            await self.initialize()

        if not self.is_available():
            return ClassificationResult.unknown()

        normalized = self.normalize(query)
        try:
            ranked = self._handle.predict(normalized)
        except Exception as e:
            logger.error(f"Statistical classification error: {e}")
            return ClassificationResult.unknown()

        if not ranked:
            return ClassificationResult.unknown()

        intent, confidence = ranked[0]
        alternatives = [(label, score) for label, score in ranked[1 : 1 + MAX_ALTERNATIVES]]

        logger.debug(
            f"Statistical classification: {normalized[:50]!r} -> {intent} ({confidence:.3f})"
        )
        return ClassificationResult(intent=intent, confidence=confidence, alternatives=alternatives)

    @staticmethod
    def normalize(query: str) -> str:
        """Lowercase, replace punctuation with spaces and collapse whitespace."""
        text = re.sub(r"[^\w\s]", " ", query.lower())
        return re.sub(r"\s+", " ", text).strip()
