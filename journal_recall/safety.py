"""Crisis and distress screening for chat messages."""

from __future__ import annotations

import re
from typing import Iterable, List, Mapping, Optional, Tuple, Union

from .config import SafetyConfig
from .schemas import EmotionScore, SafetyLevel, SafetyVerdict


CRISIS_PATTERNS = [
    r"\bsuicide\b",
    r"\bkill myself\b",
    r"\bend my life\b",
    r"\bwant to die\b",
    r"\bself[- ]?harm\b",
    r"\bhurt myself\b",
    r"\bno reason to live\b",
    r"\bending it all\b",
    r"\btake my own life\b",
    r"\bcut myself\b",
    r"\bkill themselves\b",
    r"\bsuicidal\b",
]

DISTRESS_PATTERNS = [
    r"\bhopeless\b",
    r"\bworthless\b",
    r"\bcan'?t go on\b",
    r"\bwant to disappear\b",
    r"\bno point\b",
    r"\bgive up\b",
]

CRISIS_INTERVENTION = """I'm concerned about what you've shared. Your wellbeing matters.

If you're having thoughts of hurting yourself, please reach out:

• National Suicide Prevention Lifeline: 988 (call or text)
• Crisis Text Line: Text HOME to 741741
• International Association for Suicide Prevention: https://www.iasp.info/resources/Crisis_Centres/

You don't have to face this alone. A trained counselor is available 24/7."""

DISTRESS_MESSAGE = "I hear that you're going through a difficult time. Your feelings are valid."

EMOTION_DISTRESS_MESSAGE = (
    "It sounds like you may be carrying some heavy feelings right now. "
    "Take all the time you need."
)

SUPPORT_RESOURCES = """---
If you'd like to talk to someone, support is available:
• 988 Suicide & Crisis Lifeline (call or text 988)
• Crisis Text Line (text HOME to 741741)"""


EmotionInput = Union[Mapping[str, float], Iterable[Union[EmotionScore, Tuple[str, float]]]]


def _compile(patterns: List[str]) -> re.Pattern:
    return re.compile("|".join(f"(?:{p})" for p in patterns), re.IGNORECASE)


def _emotion_pairs(emotions: EmotionInput) -> List[Tuple[str, float]]:
    if isinstance(emotions, Mapping):
        return [(str(label), float(score)) for label, score in emotions.items()]
    out: List[Tuple[str, float]] = []
    for item in emotions:
        if isinstance(item, EmotionScore):
            out.append((item.label, float(item.score)))
        else:
            label, score = item
            out.append((str(label), float(score)))
    return out


class SafetyGate:
    """Classifies a message as safe, distressed, or in crisis.

    Stateless: the same text and emotions always give the same verdict.
    """

    def __init__(self, config: Optional[SafetyConfig] = None):
        self.config = config or SafetyConfig()
        self.crisis_re = _compile(CRISIS_PATTERNS)
        self.distress_re = _compile(DISTRESS_PATTERNS)
        self.risk_emotions = {label.lower() for label in self.config.risk_emotions}

    def classify(self, text: str, emotions: Optional[EmotionInput] = None) -> SafetyVerdict:
        if self.crisis_re.search(text):
            return SafetyVerdict(safe=False, level=SafetyLevel.CRISIS, intervention=CRISIS_INTERVENTION)

        if self.distress_re.search(text):
            return SafetyVerdict(safe=True, level=SafetyLevel.DISTRESS, intervention=DISTRESS_MESSAGE)

        if emotions is not None:
            for label, score in _emotion_pairs(emotions):
                if label.lower() in self.risk_emotions and score > self.config.emotion_threshold:
                    return SafetyVerdict(
                        safe=True,
                        level=SafetyLevel.DISTRESS,
                        intervention=EMOTION_DISTRESS_MESSAGE,
                    )

        return SafetyVerdict(safe=True, level=SafetyLevel.SAFE, intervention=None)

    def augment(self, response: str, verdict: SafetyVerdict) -> str:
        """Append support resources to a response when distress was detected."""
        if verdict.level is SafetyLevel.DISTRESS:
            return f"{response}\n\n{SUPPORT_RESOURCES}"
        return response
