"""Model-backed capabilities: text embeddings and emotion labels."""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from typing import Callable, Dict, Generic, List, Optional, TypeVar

import httpx
import numpy as np
from chromadb.utils import embedding_functions
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from .embeddings import l2_normalize, validate_vector
from .errors import EmbeddingDimensionError, ModelUnavailableError
from .schemas import EMBEDDING_DIM, EmotionScore


logger = logging.getLogger(__name__)

T = TypeVar("T")

# GoEmotions taxonomy: 27 emotion labels + neutral
EMOTION_LABELS = [
    "admiration", "amusement", "anger", "annoyance", "approval", "caring",
    "confusion", "curiosity", "desire", "disappointment", "disapproval",
    "disgust", "embarrassment", "excitement", "fear", "gratitude", "grief",
    "joy", "love", "nervousness", "optimism", "pride", "realization",
    "relief", "remorse", "sadness", "surprise", "neutral",
]

_HEURISTIC_CUES: Dict[str, List[str]] = {
    "grief": ["passed away", "funeral", "grieving", "mourning", "lost my"],
    "sadness": ["sad", "cry", "cried", "alone", "lonely", "hurt", "down"],
    "fear": ["scared", "afraid", "terrified", "panic"],
    "nervousness": ["anxious", "nervous", "worried", "uneasy", "on edge"],
    "disappointment": ["disappointed", "let down", "failed"],
    "anger": ["angry", "furious", "rage", "mad at"],
    "joy": ["happy", "great day", "wonderful", "excited", "good day"],
    "gratitude": ["grateful", "thankful", "thank you"],
    "love": ["love", "adore"],
    "optimism": ["hope", "looking forward", "someday"],
    "relief": ["relieved", "finally over"],
}


class LazyModel(Generic[T]):
    """Shared handle that loads its value on first use, exactly once.

    Reads take the unlocked fast path once loaded; the first callers
    serialize on a lock and re-check before loading.
    """

    def __init__(self, loader: Callable[[], T], name: str = "model"):
        self._loader = loader
        self._name = name
        self._value: Optional[T] = None
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._value is not None

    def get(self) -> T:
        value = self._value
        if value is not None:
            return value

        with self._lock:
            if self._value is not None:
                return self._value
            logger.info("Loading %s...", self._name)
            try:
                self._value = self._loader()
            except Exception as exc:
                raise ModelUnavailableError(f"Could not load {self._name}: {exc}") from exc
            logger.info("%s loaded", self._name)
            return self._value


class SentenceTransformerEmbedder:
    """``embed(text)`` capability backed by a sentence-transformers model."""

    def __init__(self, model_name: str = "all-MiniLM-L6-v2", dim: int = EMBEDDING_DIM):
        self.model_name = model_name
        self.dim = dim
        self._model = LazyModel(
            lambda: embedding_functions.SentenceTransformerEmbeddingFunction(model_name=model_name),
            name=f"embedding model {model_name}",
        )

    def embed(self, text: str) -> np.ndarray:
        return self.embed_many([text])[0]

    def embed_many(self, texts: List[str]) -> List[np.ndarray]:
        if not texts:
            return []
        fn = self._model.get()
        try:
            raw = fn(list(texts))
        except Exception as exc:
            raise ModelUnavailableError(f"Embedding failed: {exc}") from exc
        try:
            return [l2_normalize(validate_vector(vec, self.dim)) for vec in raw]
        except EmbeddingDimensionError as exc:
            raise ModelUnavailableError(f"Embedding model returned wrong dimension: {exc}") from exc


def _extract_json_object(raw: str) -> Optional[dict]:
    raw = raw.strip()
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        pass
    match = re.search(r"\{[\s\S]*\}", raw)
    if not match:
        return None
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError:
        return None


def _clamp_score(value: object) -> Optional[float]:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    return max(0.0, min(1.0, score))


def heuristic_emotions(text: str) -> List[EmotionScore]:
    """Keyword cues mapped to GoEmotions labels; ``neutral`` when nothing fires."""
    lowered = text.lower()
    scores: List[EmotionScore] = []
    for label, cues in _HEURISTIC_CUES.items():
        hits = sum(1 for cue in cues if re.search(rf"\b{re.escape(cue)}\b", lowered))
        if hits:
            scores.append(EmotionScore(label=label, score=min(0.9, 0.45 + 0.15 * hits)))
    if not scores:
        return [EmotionScore(label="neutral", score=0.6)]
    scores.sort(key=lambda e: (-e.score, e.label))
    return scores


class EmotionClassifier:
    """``classify_emotions(text)`` with an LLM-first, heuristic-fallback design."""

    def __init__(
        self,
        model: str = "gemini-2.5-flash",
        google_api_key: Optional[str] = None,
        enabled: bool = True,
        client: Optional[genai.Client] = None,
    ):
        self.model = model
        self.enabled = enabled
        self.api_key = google_api_key or os.getenv("GEMINI_API_KEY")
        if client is not None:
            self.client = client
        elif self.api_key and enabled:
            self.client = genai.Client(api_key=self.api_key)
        else:
            self.client = None

    def classify_emotions(self, text: str, top_k: int = 5) -> List[EmotionScore]:
        if not text.strip():
            return []
        labels = self._classify_llm(text) if self.client else None
        if labels is None:
            labels = heuristic_emotions(text)
        return labels[:top_k]

    def _classify_llm(self, text: str) -> Optional[List[EmotionScore]]:
        prompt = f"""
You are a conservative emotion classifier for private journal text.

Rules:
1) Use only the text evidence.
2) Pick labels only from: {EMOTION_LABELS}
3) Scores are confidences between 0 and 1.
4) Output STRICT JSON only, no markdown and no extra commentary.

Return exactly:
{{"emotions": [{{"label": "neutral", "score": 0.5}}]}}

Text:
{json.dumps(text[:1800], ensure_ascii=False)}
"""
        try:
            resp = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=genai_types.GenerateContentConfig(temperature=0),
            )
        except (genai_errors.APIError, httpx.HTTPError) as exc:
            logger.warning("Emotion labeling request failed, using heuristics: %s", exc)
            return None

        raw = resp.text
        if not raw:
            return None
        parsed = _extract_json_object(raw)
        if not parsed or not isinstance(parsed.get("emotions"), list):
            return None

        out: List[EmotionScore] = []
        for item in parsed["emotions"]:
            if not isinstance(item, dict):
                continue
            label = str(item.get("label", "")).lower()
            score = _clamp_score(item.get("score"))
            if label in EMOTION_LABELS and score is not None:
                out.append(EmotionScore(label=label, score=score))
        if not out:
            return None
        out.sort(key=lambda e: (-e.score, e.label))
        return out
