"""Task classification: text to category, confidence and uncertainty."""

from adaptive_router.classification.classifier import (
    UNKNOWN_CATEGORY,
    ClassificationResult,
    CognitiveRequirements,
    ComplexityEstimate,
    TaskClassifier,
    TextSignals,
    classify,
    preprocess,
    unknown_classification,
)
from adaptive_router.classification.patterns import (
    DEFAULT_CLASSIFIER_TUNING,
    DEFAULT_PATTERNS,
    CategoryPattern,
    ClassifierTuning,
)

__all__ = [
    "DEFAULT_CLASSIFIER_TUNING",
    "DEFAULT_PATTERNS",
    "UNKNOWN_CATEGORY",
    "CategoryPattern",
    "ClassificationResult",
    "ClassifierTuning",
    "CognitiveRequirements",
    "ComplexityEstimate",
    "TaskClassifier",
    "TextSignals",
    "classify",
    "preprocess",
    "unknown_classification",
]
