"""Packs chat history and retrieved entries into a fixed character budget."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple, TypeVar

from .config import ContextBudget
from .schemas import ChatTurn


logger = logging.getLogger(__name__)

R = TypeVar("R")

ELLIPSIS = "..."


def truncate_snippet(text: str, max_chars: int) -> str:
    """Cut ``text`` to at most ``max_chars`` characters at a word boundary."""
    if len(text) <= max_chars:
        return text
    if max_chars <= len(ELLIPSIS):
        return text[:max_chars]
    head = text[: max_chars - len(ELLIPSIS)]
    last_space = head.rfind(" ")
    if last_space > 0:
        head = head[:last_space]
    return f"{head.rstrip()}{ELLIPSIS}"


class ContextBudgetFitter:
    """Greedy, single-pass selection of history first, then retrieved context.

    Conversation recency wins over retrieval: history is packed newest-first
    out of its own ceiling, and retrieved results share whatever is left.
    """

    def __init__(self, budget: Optional[ContextBudget] = None):
        self.budget = budget or ContextBudget()

    def history_cost(self, turn: ChatTurn) -> int:
        return len(turn.content) + self.budget.per_turn_overhead

    def result_cost(self, result) -> int:
        snippet = truncate_snippet(result.content, self.budget.snippet_max_chars)
        return len(snippet) + self.budget.rag_item_overhead

    def fit(
        self,
        results: Sequence[R],
        history: Sequence[ChatTurn],
    ) -> Tuple[List[R], List[ChatTurn]]:
        """Return the results and turns that fit, both in their input order."""
        available = self.budget.available
        history_cap = min(available, self.budget.history_budget)

        kept_history: List[ChatTurn] = []
        history_used = 0
        for turn in reversed(history):
            cost = self.history_cost(turn)
            if history_used + cost > history_cap:
                break
            kept_history.append(turn)
            history_used += cost
        kept_history.reverse()

        rag_cap = min(available - history_used, self.budget.rag_budget)
        kept_results: List[R] = []
        rag_used = 0
        for result in results:
            cost = self.result_cost(result)
            if rag_used + cost > rag_cap:
                break
            kept_results.append(result)
            rag_used += cost

        logger.debug(
            "Context fit: %d/%d turns (%d chars), %d/%d results (%d chars)",
            len(kept_history),
            len(history),
            history_used,
            len(kept_results),
            len(results),
            rag_used,
        )
        return kept_results, kept_history
