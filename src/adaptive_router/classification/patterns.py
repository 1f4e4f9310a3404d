"""Category pattern tables for the task classifier.

Each category carries keyword and phrase lists, a base weight that every hit
contributes, its cognitive load and the behavioural flags that feed routing.
Tables are frozen; build a new ``ClassifierTuning`` to retune.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final

from adaptive_router.models import Level


@dataclass(frozen=True)
class CategoryPattern:
    """Keyword/phrase signature of one task category."""

    name: str
    keywords: tuple[str, ...]
    phrases: tuple[str, ...] = ()
    weight: float = 0.7
    cognitive_load: Level = Level.MEDIUM
    requires_focus: bool = False
    creative: bool = False
    requires_patience: bool = False
    requires_clarity: bool = False
    time_sensitive: bool = False
    prefers_speed: bool = False
    privacy_critical: bool = False
    # Additive score bonus when a preprocessing signal is present
    signal_bonus: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0.0 < self.weight <= 1.0:
            raise ValueError(f"{self.name}: weight must be in (0.0, 1.0], got {self.weight}")


DEFAULT_PATTERNS: Final[tuple[CategoryPattern, ...]] = (
    CategoryPattern(
        name="debug",
        keywords=("debug", "fix", "error", "bug", "broken", "issue", "problem", "troubleshoot"),
        phrases=("not working", "throws error", "fails to", "fix this", "stack trace"),
        weight=0.9,
        cognitive_load=Level.HIGH,
        requires_focus=True,
        time_sensitive=True,
        signal_bonus={"has_error_messages": 0.3},
    ),
    CategoryPattern(
        name="code",
        keywords=("code", "function", "script", "program", "implement", "refactor"),
        phrases=("write code", "build this", "code for", "programming", "create function"),
        weight=0.8,
        cognitive_load=Level.HIGH,
        requires_focus=True,
        creative=True,
        signal_bonus={"has_code_snippets": 0.5},
    ),
    CategoryPattern(
        name="analyze",
        keywords=("analyze", "analyse", "examine", "evaluate", "assess", "review", "investigate"),
        phrases=("what does this do", "how does this work", "analyze this"),
        weight=0.8,
        cognitive_load=Level.HIGH,
        requires_focus=True,
        requires_patience=True,
    ),
    CategoryPattern(
        name="write",
        keywords=("write", "compose", "draft", "document", "essay", "email"),
        phrases=("write about", "compose a", "create content", "draft this"),
        weight=0.8,
        creative=True,
        requires_clarity=True,
    ),
    CategoryPattern(
        name="summarize",
        keywords=("summarize", "summarise", "summary", "tldr", "condense", "outline"),
        phrases=("sum up", "give me a summary", "briefly explain", "tl;dr"),
        weight=0.9,
        requires_focus=True,
    ),
    CategoryPattern(
        name="explain",
        keywords=("explain", "describe", "clarify", "what is", "how does"),
        phrases=("explain how", "what does this mean", "help me understand", "tell me about"),
        weight=0.7,
        requires_clarity=True,
    ),
    CategoryPattern(
        name="research",
        keywords=("research", "find out", "lookup", "search", "discover", "sources"),
        phrases=("find information", "research this", "look up", "what can you find"),
        weight=0.9,
        requires_patience=True,
    ),
    CategoryPattern(
        name="route",
        keywords=("route", "forward", "which model", "who should", "best for"),
        phrases=("route this to", "who handles", "best model for"),
        weight=0.6,
        cognitive_load=Level.LOW,
    ),
    CategoryPattern(
        name="sensitive",
        keywords=("private", "confidential", "personal", "secret", "sensitive", "password"),
        phrases=("keep private", "confidential data", "personal information", "medical record"),
        weight=0.9,
        privacy_critical=True,
    ),
    CategoryPattern(
        name="creative",
        keywords=("creative", "brainstorm", "imagine", "design", "artistic", "innovative"),
        phrases=("be creative", "brainstorm ideas", "creative writing", "come up with"),
        weight=0.7,
        creative=True,
    ),
    CategoryPattern(
        name="quick_query",
        keywords=("quick", "brief", "simple", "just", "only"),
        phrases=("quick question", "just tell me", "simple answer", "briefly"),
        weight=0.6,
        cognitive_load=Level.LOW,
        time_sensitive=True,
        prefers_speed=True,
    ),
)


@dataclass(frozen=True)
class ClassifierTuning:
    """All knobs the classifier reads. Immutable; inject per tenant."""

    patterns: tuple[CategoryPattern, ...] = DEFAULT_PATTERNS
    phrase_multiplier: float = 1.3
    multi_match_boost: float = 1.2
    secondary_floor: float = 0.3
    strong_secondary: float = 0.5
    # Confidence bands, high to low
    high_confidence: float = 0.8
    medium_confidence: float = 0.6
    low_confidence: float = 0.4
    uncertain: float = 0.2
    crowded_secondaries: int = 2
    # Minimum confidence after each contextual override
    code_override_floor: float = 0.8
    error_override_floor: float = 0.85
    question_override_floor: float = 0.7
    high_complexity_categories: tuple[str, ...] = ("debug", "code", "analyze")
    privacy_keywords: tuple[str, ...] = (
        "private", "confidential", "personal", "secret", "password",
        "api key", "token", "credentials", "sensitive", "ssn",
    )
    fallback_category: str = "general"

    def __post_init__(self) -> None:
        if not self.patterns:
            raise ValueError("at least one category pattern is required")
        names = [p.name for p in self.patterns]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate category names in {names}")
        if not (
            0.0 <= self.uncertain < self.low_confidence
            < self.medium_confidence < self.high_confidence <= 1.0
        ):
            raise ValueError("confidence bands must be strictly increasing within [0, 1]")

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.patterns)

    def pattern(self, name: str) -> CategoryPattern | None:
        for p in self.patterns:
            if p.name == name:
                return p
        return None


DEFAULT_CLASSIFIER_TUNING: Final = ClassifierTuning()
