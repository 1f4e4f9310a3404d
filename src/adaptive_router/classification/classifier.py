"""Multi-pattern task classifier with uncertainty quantification.

Scores task text against every category pattern, picks the strongest as the
primary category, applies contextual overrides (code syntax, error text,
open questions) and derives an uncertainty level from the confidence band and
the competition among secondary candidates.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

from adaptive_router.classification.patterns import (
    DEFAULT_CLASSIFIER_TUNING,
    CategoryPattern,
    ClassifierTuning,
)
from adaptive_router.errors import InvalidInput
from adaptive_router.models import Level, UncertaintyLevel, clamp

UNKNOWN_CATEGORY: Final = "unknown"

# ═══════════════════════════════════════════════════════════════════════════
# TEXT SIGNALS
# ═══════════════════════════════════════════════════════════════════════════

QUESTION_WORDS: Final = ("what", "how", "why", "when", "where", "which")
ACTION_WORDS: Final = ("create", "build", "make", "write", "debug", "fix", "analyze")
URGENCY_WORDS: Final = ("quick", "fast", "urgent", "asap", "immediately", "now")

CODE_PATTERN: Final = re.compile(
    r"```|\bdef \w+\s*\(|\bfunction\s*\w*\s*\(|\bclass \w+\s*[:({]|^\s*import \w+"
    r"|^\s*from \w+(\.\w+)* import |\brequire\(|=>|\bconst \w+\s*=",
    re.MULTILINE,
)
ERROR_PATTERN: Final = re.compile(
    r"error|exception|failed|undefined|null|traceback", re.IGNORECASE
)
_SENTENCE_SPLIT: Final = re.compile(r"[.!?]+")


def _term_pattern(term: str) -> re.Pattern[str]:
    # Anchored at the word start so inflections still match ("errors", "debugging")
    return re.compile(r"\b" + re.escape(term))


def _find_terms(text: str, terms: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(t for t in terms if _term_pattern(t).search(text))


@dataclass(frozen=True)
class TextSignals:
    """Surface features extracted from task text before scoring."""

    text: str
    word_count: int
    sentence_count: int
    question_words: tuple[str, ...]
    action_words: tuple[str, ...]
    urgency_words: tuple[str, ...]
    has_code_snippets: bool
    has_error_messages: bool
    privacy_terms: tuple[str, ...]

    def present(self) -> frozenset[str]:
        """Names of the boolean signals that fired."""
        names = set()
        if self.has_code_snippets:
            names.add("has_code_snippets")
        if self.has_error_messages:
            names.add("has_error_messages")
        if self.urgency_words:
            names.add("urgency")
        if self.question_words:
            names.add("question")
        if self.privacy_terms:
            names.add("privacy_terms")
        return frozenset(names)

    def flag(self, name: str) -> bool:
        return name in self.present()


def preprocess(text: object, privacy_keywords: tuple[str, ...] = ()) -> TextSignals:
    """Extract surface signals.

    Raises:
        InvalidInput: if ``text`` is not a string or is blank
    """
    if not isinstance(text, str):
        raise InvalidInput(f"task must be text, got {type(text).__name__}")
    stripped = text.strip()
    if not stripped:
        raise InvalidInput("task text is empty")

    lowered = stripped.lower()
    words = lowered.split()
    sentences = [s for s in _SENTENCE_SPLIT.split(stripped) if s.strip()]
    return TextSignals(
        text=lowered,
        word_count=len(words),
        sentence_count=len(sentences),
        question_words=tuple(w for w in QUESTION_WORDS if w in words),
        action_words=tuple(w for w in ACTION_WORDS if w in words),
        urgency_words=tuple(w for w in URGENCY_WORDS if w in words),
        has_code_snippets=bool(CODE_PATTERN.search(stripped)),
        has_error_messages=bool(ERROR_PATTERN.search(stripped)),
        privacy_terms=_find_terms(lowered, privacy_keywords),
    )


# ═══════════════════════════════════════════════════════════════════════════
# RESULT TYPES
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class CognitiveRequirements:
    """What a task asks of the person working on it."""

    load: Level = Level.MEDIUM
    requires_focus: bool = False
    creative: bool = False
    requires_patience: bool = False
    requires_clarity: bool = False
    time_sensitive: bool = False
    prefers_speed: bool = False


@dataclass(frozen=True)
class ComplexityEstimate:
    score: float
    level: Level


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of classifying one task."""

    primary_category: str
    primary_confidence: float
    matched_signals: frozenset[str]
    secondary_categories: tuple[tuple[str, float], ...]
    uncertainty_level: UncertaintyLevel
    cognitive_requirements: CognitiveRequirements
    complexity: ComplexityEstimate
    uncertainty_reasons: tuple[str, ...] = ()
    urgent: bool = False
    privacy_sensitive: bool = False
    adjustments: tuple[str, ...] = ()
    routing_hints: tuple[str, ...] = ()
    fallback_strategy: str = "standard"

    def __post_init__(self) -> None:
        if not 0.0 <= self.primary_confidence <= 1.0:
            raise ValueError(
                f"primary_confidence must be in [0.0, 1.0], got {self.primary_confidence}"
            )

    @property
    def is_unknown(self) -> bool:
        return self.primary_category == UNKNOWN_CATEGORY

    @property
    def requires_clarification(self) -> bool:
        return self.uncertainty_level.is_high

    def to_dict(self) -> dict[str, Any]:
        req = self.cognitive_requirements
        return {
            "primary_category": self.primary_category,
            "primary_confidence": self.primary_confidence,
            "matched_signals": sorted(self.matched_signals),
            "secondary_categories": [[c, s] for c, s in self.secondary_categories],
            "uncertainty_level": str(self.uncertainty_level),
            "uncertainty_reasons": list(self.uncertainty_reasons),
            "cognitive_requirements": {
                "load": str(req.load),
                "requires_focus": req.requires_focus,
                "creative": req.creative,
                "requires_patience": req.requires_patience,
                "requires_clarity": req.requires_clarity,
                "time_sensitive": req.time_sensitive,
                "prefers_speed": req.prefers_speed,
            },
            "complexity": {"score": self.complexity.score, "level": str(self.complexity.level)},
            "urgent": self.urgent,
            "privacy_sensitive": self.privacy_sensitive,
            "adjustments": list(self.adjustments),
            "routing_hints": list(self.routing_hints),
            "fallback_strategy": self.fallback_strategy,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ClassificationResult:
        req = dict(data.get("cognitive_requirements", {}))
        req["load"] = Level(req.get("load", "medium"))
        complexity = data.get("complexity", {"score": 0.5, "level": "medium"})
        return cls(
            primary_category=data["primary_category"],
            primary_confidence=float(data["primary_confidence"]),
            matched_signals=frozenset(data.get("matched_signals", ())),
            secondary_categories=tuple(
                (str(c), float(s)) for c, s in data.get("secondary_categories", ())
            ),
            uncertainty_level=UncertaintyLevel(data["uncertainty_level"]),
            uncertainty_reasons=tuple(data.get("uncertainty_reasons", ())),
            cognitive_requirements=CognitiveRequirements(**req),
            complexity=ComplexityEstimate(
                score=float(complexity["score"]), level=Level(complexity["level"])
            ),
            urgent=bool(data.get("urgent", False)),
            privacy_sensitive=bool(data.get("privacy_sensitive", False)),
            adjustments=tuple(data.get("adjustments", ())),
            routing_hints=tuple(data.get("routing_hints", ())),
            fallback_strategy=data.get("fallback_strategy", "standard"),
        )


def unknown_classification(reason: str) -> ClassificationResult:
    """Sentinel returned for empty or non-text input."""
    return ClassificationResult(
        primary_category=UNKNOWN_CATEGORY,
        primary_confidence=0.0,
        matched_signals=frozenset(),
        secondary_categories=(),
        uncertainty_level=UncertaintyLevel.VERY_HIGH,
        uncertainty_reasons=(reason,),
        cognitive_requirements=CognitiveRequirements(),
        complexity=ComplexityEstimate(score=0.5, level=Level.MEDIUM),
        fallback_strategy="clarification_requested",
    )


# ═══════════════════════════════════════════════════════════════════════════
# CLASSIFIER
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class _Score:
    category: str
    score: float
    matches: tuple[str, ...]


class TaskClassifier:
    """Pure, deterministic classifier over an injected pattern table."""

    def __init__(self, tuning: ClassifierTuning = DEFAULT_CLASSIFIER_TUNING) -> None:
        self.tuning = tuning
        self._order = {name: i for i, name in enumerate(tuning.categories)}

    def classify(self, text: object) -> ClassificationResult:
        """Classify task text. Never raises on bad input.

        Args:
            text: Raw task text

        Returns:
            ClassificationResult, or the ``unknown`` sentinel for empty input
        """
        try:
            signals = preprocess(text, self.tuning.privacy_keywords)
        except InvalidInput as exc:
            return unknown_classification(str(exc))

        scores = {p.name: self._score(p, signals) for p in self.tuning.patterns}
        ranked = sorted(scores.values(), key=lambda s: (-s.score, self._order[s.category]))

        if ranked[0].score > 0:
            primary, confidence = ranked[0].category, ranked[0].score
        else:
            primary, confidence = self.tuning.fallback_category, self.tuning.low_confidence - 0.1

        primary, confidence, adjustments = self._contextual_overrides(
            primary, confidence, scores, signals
        )
        confidence = round(clamp(confidence), 3)

        # an override can demote the top scorer; alternatives never outrank the primary
        alternatives = [
            (s.category, round(min(s.score, 1.0), 3)) for s in ranked if s.category != primary
        ]
        secondary = tuple(
            (category, score)
            for category, score in alternatives
            if self.tuning.secondary_floor <= score <= confidence
        )
        uncertainty, reasons = self._uncertainty(confidence, secondary)
        pattern = self.tuning.pattern(primary)
        requirements = self._requirements(pattern, signals)
        privacy = bool(signals.privacy_terms) or bool(pattern and pattern.privacy_critical)

        matched = set(signals.present())
        if primary in scores:
            matched.update(scores[primary].matches)

        return ClassificationResult(
            primary_category=primary,
            primary_confidence=confidence,
            matched_signals=frozenset(matched),
            secondary_categories=secondary,
            uncertainty_level=uncertainty,
            uncertainty_reasons=reasons,
            cognitive_requirements=requirements,
            complexity=self._complexity(primary, requirements, signals),
            urgent=bool(signals.urgency_words),
            privacy_sensitive=privacy,
            adjustments=adjustments,
            routing_hints=self._routing_hints(privacy, requirements),
            fallback_strategy="ask_user" if uncertainty.is_high else "standard",
        )

    # ── scoring ──────────────────────────────────────────────────────────

    def _score(self, pattern: CategoryPattern, signals: TextSignals) -> _Score:
        keywords = _find_terms(signals.text, pattern.keywords)
        phrases = _find_terms(signals.text, pattern.phrases)
        score = len(keywords) * pattern.weight
        score += self.tuning.phrase_multiplier * len(phrases) * pattern.weight
        if len(keywords) + len(phrases) >= 2:
            score *= self.tuning.multi_match_boost
        for signal, bonus in pattern.signal_bonus.items():
            if signals.flag(signal):
                score += bonus
        matches = tuple(f"keyword:{k}" for k in keywords) + tuple(f"phrase:{p}" for p in phrases)
        return _Score(pattern.name, round(score, 4), matches)

    def _contextual_overrides(
        self,
        primary: str,
        confidence: float,
        scores: Mapping[str, _Score],
        signals: TextSignals,
    ) -> tuple[str, float, tuple[str, ...]]:
        t = self.tuning
        adjustments: list[str] = []

        def score_of(name: str) -> float:
            return scores[name].score if name in scores else 0.0

        if (
            signals.has_code_snippets
            and "code" in scores
            and primary not in ("code", "debug")
            and score_of("code") >= score_of("debug")
        ):
            adjustments.append(f"code_syntax: {primary} -> code")
            primary, confidence = "code", max(score_of("code"), t.code_override_floor)

        if signals.has_error_messages and "debug" in scores and primary != "debug":
            adjustments.append(f"error_text: {primary} -> debug")
            primary, confidence = "debug", max(score_of("debug"), t.error_override_floor)

        open_question = any(w in signals.question_words for w in ("how", "why"))
        if (
            open_question
            and not adjustments
            and "explain" in scores
            and primary not in ("explain", "research", "analyze")
            and confidence < t.medium_confidence
        ):
            adjustments.append(f"open_question: {primary} -> explain")
            primary, confidence = "explain", max(score_of("explain"), t.question_override_floor)

        return primary, confidence, tuple(adjustments)

    # ── derived properties ───────────────────────────────────────────────

    def _uncertainty(
        self, confidence: float, secondary: tuple[tuple[str, float], ...]
    ) -> tuple[UncertaintyLevel, tuple[str, ...]]:
        t = self.tuning
        reasons: list[str] = []
        if confidence < t.uncertain:
            level = UncertaintyLevel.VERY_HIGH
            reasons.append("very low classification confidence")
        elif confidence < t.low_confidence:
            level = UncertaintyLevel.HIGH
            reasons.append("low classification confidence")
        elif confidence < t.medium_confidence:
            level = UncertaintyLevel.MEDIUM
            reasons.append("moderate classification confidence")
        else:
            level = UncertaintyLevel.LOW

        strong = [c for c, s in secondary if s > t.strong_secondary]
        if strong:
            level = level.escalate()
            reasons.append(f"strong alternative categories: {', '.join(strong)}")
        if len(secondary) > t.crowded_secondaries:
            level = level.escalate()
            reasons.append(f"{len(secondary)} competing categories")
        return level, tuple(reasons)

    def _requirements(
        self, pattern: CategoryPattern | None, signals: TextSignals
    ) -> CognitiveRequirements:
        if pattern is None:
            req = CognitiveRequirements()
        else:
            req = CognitiveRequirements(
                load=pattern.cognitive_load,
                requires_focus=pattern.requires_focus,
                creative=pattern.creative,
                requires_patience=pattern.requires_patience,
                requires_clarity=pattern.requires_clarity,
                time_sensitive=pattern.time_sensitive,
                prefers_speed=pattern.prefers_speed,
            )
        load = req.load
        patience = req.requires_patience
        focus = req.requires_focus
        if signals.word_count > 100:
            patience, load = True, Level.HIGH
        if signals.has_code_snippets:
            focus, load = True, Level.HIGH
        urgent = bool(signals.urgency_words)
        return CognitiveRequirements(
            load=load,
            requires_focus=focus,
            creative=req.creative,
            requires_patience=patience,
            requires_clarity=req.requires_clarity,
            time_sensitive=req.time_sensitive or urgent,
            prefers_speed=req.prefers_speed or urgent,
        )

    def _complexity(
        self, primary: str, requirements: CognitiveRequirements, signals: TextSignals
    ) -> ComplexityEstimate:
        score = 0.3
        if signals.word_count > 50:
            score += 0.2
        if signals.word_count > 100:
            score += 0.2
        if signals.sentence_count > 3:
            score += 0.1
        if primary in self.tuning.high_complexity_categories:
            score += 0.3
        if signals.has_code_snippets:
            score += 0.2
        if signals.has_error_messages:
            score += 0.1
        if requirements.load == Level.LOW:
            score -= 0.2
        score = round(clamp(score), 3)
        if score >= 0.7:
            level = Level.HIGH
        elif score <= 0.3:
            level = Level.LOW
        else:
            level = Level.MEDIUM
        return ComplexityEstimate(score=score, level=level)

    @staticmethod
    def _routing_hints(privacy: bool, req: CognitiveRequirements) -> tuple[str, ...]:
        hints = []
        if privacy:
            hints.append("local_processing")
        if req.prefers_speed or req.time_sensitive:
            hints.append("fast_response")
        if req.load == Level.HIGH or req.creative:
            hints.append("high_quality")
        return tuple(hints)


_default_classifier = TaskClassifier()


def classify(text: object) -> ClassificationResult:
    """Classify with the default pattern table."""
    return _default_classifier.classify(text)
