"""
Sentiment classification and tallying for aggregated timelines.

Each post's HTML is reduced to plain text, classified by a text-classification
model when its length falls within the accepted band, and the resulting
labels are tallied. Classification problems never fail a request: an item the
classifier cannot handle is left out of the tally.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from regional_timeline.config import MAX_TEXT_LENGTH, MIN_TEXT_LENGTH
from regional_timeline.core.errors import ClassificationError
from regional_timeline.models import Post, SentimentTally
from regional_timeline.utils import strip_html

logger = logging.getLogger(__name__)

Prediction = Dict[str, Any]

_pipeline_lock = threading.Lock()


class Classifier(Protocol):
    async def classify(self, text: str) -> List[Prediction]:
        """Return ``[{"label": str, "score": float}, ...]`` for ``text``."""
        ...


@lru_cache(maxsize=2)
def _load_sentiment_pipeline(model_name: str):
    """
    Load a Hugging Face text-classification pipeline.

    Returns:
        Pipeline callable returning scores for every label

    Raises:
        RuntimeError: If required dependencies are not installed
    """
    try:
        from transformers import pipeline
    except ImportError as e:
        raise RuntimeError(
            "Sentiment model dependencies are missing. Install transformers and torch.\n"
            "Try: pip install 'regional-timeline[classifier]'"
        ) from e

    return pipeline("text-classification", model=model_name, top_k=None)


class TransformersClassifier:
    """Runs a local transformers pipeline in a worker thread."""

    def __init__(self, model_name: str):
        self.model_name = model_name

    def load(self):
        # Warm-up and request threads may race on the first load
        with _pipeline_lock:
            return _load_sentiment_pipeline(self.model_name)

    async def warm_up(self) -> None:
        await asyncio.to_thread(self.load)

    def _classify_sync(self, text: str) -> List[Prediction]:
        results = self.load()(text, truncation=True)
        # Single-string input may come back wrapped in an outer list
        if results and isinstance(results[0], list):
            results = results[0]
        return [{"label": r["label"], "score": float(r["score"])} for r in results]

    async def classify(self, text: str) -> List[Prediction]:
        return await asyncio.to_thread(self._classify_sync, text)


def map_label(label: str) -> str:
    """
    Map a raw classifier label onto positive / negative / neutral.

    SST-2 style models report POSITIVE/NEGATIVE, or LABEL_1/LABEL_0 when the
    label names were not exported. Anything else counts as neutral.
    """
    upper = (label or "").upper()
    if "POSITIVE" in upper or upper == "LABEL_1":
        return "positive"
    if "NEGATIVE" in upper or upper == "LABEL_0":
        return "negative"
    return "neutral"


def top_prediction(predictions: Iterable[Prediction]) -> Tuple[str, float]:
    """
    Pick the highest-scoring entry.

    Raises:
        ClassificationError: if there are no usable predictions
    """
    best: Optional[Tuple[str, float]] = None
    for prediction in predictions or []:
        try:
            label, score = str(prediction["label"]), float(prediction["score"])
        except (KeyError, TypeError, ValueError):
            continue
        if best is None or score > best[1]:
            best = (label, score)

    if best is None:
        raise ClassificationError("classifier returned no predictions")
    return best


def within_length_band(text: str, min_length: int = MIN_TEXT_LENGTH, max_length: int = MAX_TEXT_LENGTH) -> bool:
    return min_length <= len(text) <= max_length


class SentimentSummarizer:
    """Classifies post texts and aggregates the labels into a tally."""

    def __init__(
        self,
        classifier: Optional[Classifier],
        min_length: int = MIN_TEXT_LENGTH,
        max_length: int = MAX_TEXT_LENGTH,
        max_concurrent: int = 4,
    ):
        self.classifier = classifier
        self.min_length = min_length
        self.max_length = max_length
        self.max_concurrent = max(1, max_concurrent)

    @property
    def available(self) -> bool:
        return self.classifier is not None

    async def _classify_clean(self, text: str, semaphore: asyncio.Semaphore) -> Optional[Tuple[str, float]]:
        if not within_length_band(text, self.min_length, self.max_length):
            return None

        try:
            async with semaphore:
                predictions = await self.classifier.classify(text)
            return top_prediction(predictions)
        except Exception as e:
            # Any classifier failure drops the item
            logger.warning("Classification failed for text %r: %s", text[:20], e)
            return None

    async def classify_texts(self, texts: List[str]) -> List[Optional[Dict[str, Any]]]:
        """
        Classify raw (possibly HTML) texts one by one.

        Args:
            texts: Raw texts in caller order

        Returns:
            One ``{"original_text", "label", "score"}`` dict per text, or None where
            the text was out of band or could not be classified
        """
        if not self.available:
            return [None] * len(texts)

        semaphore = asyncio.Semaphore(self.max_concurrent)
        predictions = await asyncio.gather(
            *(self._classify_clean(strip_html(text), semaphore) for text in texts)
        )

        results: List[Optional[Dict[str, Any]]] = []
        for text, prediction in zip(texts, predictions):
            if prediction is None:
                results.append(None)
                continue
            label, score = prediction
            results.append({"original_text": text, "label": label, "score": score})

        logger.info("Sentiment analysis batch complete: %d of %d classified",
                    sum(r is not None for r in results), len(results))
        return results

    async def summarize(self, posts: Iterable[Post]) -> SentimentTally:
        """
        Tally sentiment labels across posts.

        Args:
            posts: Aggregated timeline

        Returns:
            SentimentTally over the posts that received a classification
        """
        posts = list(posts)
        if not posts:
            return SentimentTally()

        if not self.available:
            logger.warning("Sentiment classifier not available; returning empty tally")
            return SentimentTally()

        semaphore = asyncio.Semaphore(self.max_concurrent)
        predictions = await asyncio.gather(
            *(self._classify_clean(strip_html(post.content), semaphore) for post in posts)
        )

        labels = [map_label(p[0]) if p is not None else None for p in predictions]
        tally = SentimentTally.from_labels(labels)
        logger.info(
            "Classified %d of %d post(s): %d positive, %d negative, %d neutral",
            tally.total_analyzed, len(posts), tally.positive, tally.negative, tally.neutral,
        )
        return tally


__all__ = [
    "Classifier",
    "TransformersClassifier",
    "SentimentSummarizer",
    "map_label",
    "top_prediction",
    "within_length_band",
]
