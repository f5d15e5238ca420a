"""Builds the message list sent to the language model."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from .context import ContextBudgetFitter, truncate_snippet
from .schemas import ChatRole, ChatTurn, SearchResult, SourceReference


SYSTEM_PROMPT = """You are a private journaling companion. You help the user reflect on their thoughts and feelings through gentle, thoughtful conversation.

GUIDELINES:
- Acknowledge feelings before responding
- Ask guiding questions instead of giving advice
- Reference past entries naturally when relevant
- Keep responses concise and warm (2-4 sentences typically)
- Never be judgmental or dismissive
- Respect user privacy - everything shared stays private
- If the user seems distressed, respond with empathy first

You are NOT a therapist or mental health professional. For serious concerns, gently suggest speaking with a professional."""

CONTEXT_HEADER = "RELEVANT PAST ENTRIES:"


def source_reference(result: SearchResult, snippet_max_chars: int) -> SourceReference:
    return SourceReference(
        entity_id=result.entry.id,
        date=result.entry.created_iso(),
        snippet=truncate_snippet(result.entry.content, snippet_max_chars),
        score=result.fused.combined_score,
    )


class PromptBuilder:
    """System prompt + fitted retrieval context + fitted history + user turn."""

    def __init__(self, fitter: ContextBudgetFitter, system_prompt: str = SYSTEM_PROMPT):
        self.fitter = fitter
        self.system_prompt = system_prompt

    def build(
        self,
        user_message: str,
        results: Optional[Sequence[SearchResult]] = None,
        history: Optional[Sequence[ChatTurn]] = None,
    ) -> Tuple[List[Dict[str, str]], List[SourceReference]]:
        kept_results, kept_history = self.fitter.fit(results or [], history or [])
        snippet_max = self.fitter.budget.snippet_max_chars
        sources = [source_reference(result, snippet_max) for result in kept_results]

        system_content = self.system_prompt
        if sources:
            lines = [f"[{src.date or 'undated'}]: {src.snippet}" for src in sources]
            system_content = f"{system_content}\n\n{CONTEXT_HEADER}\n" + "\n".join(lines)

        messages: List[Dict[str, str]] = [{"role": ChatRole.SYSTEM.value, "content": system_content}]
        for turn in kept_history:
            messages.append({"role": ChatRole(turn.role).value, "content": turn.content})
        messages.append({"role": ChatRole.USER.value, "content": user_message})
        return messages, sources
