"""Chat companion: safety gate, retrieval, prompt packing, and streaming."""

from __future__ import annotations

import logging
import os
from typing import Callable, Dict, Iterator, List, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from .capabilities import EmotionClassifier
from .config import LLMConfig
from .prompt import PromptBuilder
from .retrieval import HybridRetriever
from .safety import SafetyGate
from .schemas import ChatReply, ChatRole, EmotionScore, SafetyLevel
from .storage import SQLiteJournalStore


logger = logging.getLogger(__name__)

OFFLINE_REPLY = (
    "Thank you for sharing that. What feels most important about it to you right now?"
)
UNAVAILABLE_REPLY = "I'm having trouble responding right now. Your message has been saved."


class GeminiChatClient:
    """``stream_completion(messages)`` over the Gemini API."""

    def __init__(
        self,
        model: str = "gemini-2.5-flash",
        google_api_key: Optional[str] = None,
        temperature: float = 0.7,
        client: Optional[genai.Client] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.api_key = google_api_key or os.getenv("GEMINI_API_KEY")
        if client is not None:
            self.client = client
        elif self.api_key:
            self.client = genai.Client(api_key=self.api_key)
        else:
            self.client = None

    def stream_completion(self, messages: List[Dict[str, str]]) -> Iterator[str]:
        """Yield text deltas for a role/content message list."""
        if not self.client:
            yield OFFLINE_REPLY
            return

        system_parts = [m["content"] for m in messages if m["role"] == ChatRole.SYSTEM.value]
        contents = [
            genai_types.Content(
                role="model" if m["role"] == ChatRole.ASSISTANT.value else "user",
                parts=[genai_types.Part(text=m["content"])],
            )
            for m in messages
            if m["role"] != ChatRole.SYSTEM.value
        ]
        config = genai_types.GenerateContentConfig(
            temperature=self.temperature,
            system_instruction="\n\n".join(system_parts) or None,
        )
        for chunk in self.client.models.generate_content_stream(
            model=self.model,
            contents=contents,
            config=config,
        ):
            if chunk.text:
                yield chunk.text


class ChatCompanion:
    """One chat turn end to end.

    Crisis messages never reach the model: the intervention text is the
    reply. Distress replies get support resources appended.
    """

    def __init__(
        self,
        store: SQLiteJournalStore,
        retriever: HybridRetriever,
        gate: SafetyGate,
        prompt_builder: PromptBuilder,
        llm: GeminiChatClient,
        emotions: Optional[EmotionClassifier] = None,
        config: Optional[LLMConfig] = None,
        max_query_chars: int = 1000,
    ):
        self.store = store
        self.retriever = retriever
        self.gate = gate
        self.prompt_builder = prompt_builder
        self.llm = llm
        self.emotions = emotions
        self.config = config or LLMConfig()
        self.max_query_chars = max_query_chars

    def respond(
        self,
        conversation_id: str,
        message: str,
        current_entry_id: Optional[str] = None,
        on_delta: Optional[Callable[[str], None]] = None,
    ) -> ChatReply:
        emotions = self._classify_emotions(message)
        verdict = self.gate.classify(message, emotions)
        logger.info("Safety verdict for conversation %s: %s", conversation_id, verdict.level.value)

        history = self.store.fetch_recent_history(conversation_id, self.config.history_turns)
        self.store.append_turn(conversation_id, ChatRole.USER, message)

        if verdict.level is SafetyLevel.CRISIS:
            reply = verdict.intervention or ""
            self.store.append_turn(conversation_id, ChatRole.ASSISTANT, reply)
            return ChatReply(text=reply, verdict=verdict, sources=[], forwarded=False)

        results = self.retriever.get_rag_context(
            message[: self.max_query_chars],
            current_entry_id=current_entry_id,
            limit=self.config.rag_limit,
        )
        messages, sources = self.prompt_builder.build(message, results, history)

        parts: List[str] = []
        try:
            for delta in self.llm.stream_completion(messages):
                parts.append(delta)
                if on_delta is not None:
                    on_delta(delta)
        except (genai_errors.APIError, httpx.HTTPError) as exc:
            logger.warning("Chat completion failed for conversation %s: %s", conversation_id, exc)
            parts = [UNAVAILABLE_REPLY]

        text = "".join(parts).strip() or OFFLINE_REPLY
        reply = self.gate.augment(text, verdict)
        self.store.append_turn(conversation_id, ChatRole.ASSISTANT, reply)
        return ChatReply(text=reply, verdict=verdict, sources=sources, forwarded=True)

    def _classify_emotions(self, message: str) -> Optional[List[EmotionScore]]:
        if self.emotions is None or not self.config.emotion_labeling:
            return None
        return self.emotions.classify_emotions(message)
