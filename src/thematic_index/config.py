"""Analysis defaults, loadable from and saveable to YAML."""

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional
import logging
import yaml

from .exceptions import InvalidArgument
from .index import DEFAULT_MAX_BATCH_CHARS

logger = logging.getLogger(__name__)


# keyword argument name -> config field, per entry point
_SECTIONS: Dict[str, Dict[str, str]] = {
    "index": {
        "max_batch_chars": "max_batch_chars",
        "max_workers": "max_workers",
    },
    "topics": {
        "num_samples": "num_samples",
        "num_keywords": "num_keywords",
        "max_workers": "max_workers",
    },
    "concept": {
        "num_samples": "concept_samples",
        "negative_multiplier": "negative_multiplier",
        "lambda_": "concept_lambda",
        "cv_folds": "cv_folds",
        "accuracy_threshold": "accuracy_threshold",
        "max_batch_chars": "max_batch_chars",
        "max_workers": "max_workers",
    },
    "spectrum": {
        "num_samples": "concept_samples",
        "lambda_": "spectrum_lambda",
        "cv_folds": "cv_folds",
        "accuracy_threshold": "accuracy_threshold",
        "max_batch_chars": "max_batch_chars",
        "max_workers": "max_workers",
    },
    "classifier": {
        "num_samples": "classifier_samples",
        "lambda_": "classifier_lambda",
        "cv_folds": "cv_folds",
        "accuracy_threshold": "accuracy_threshold",
        "max_batch_chars": "max_batch_chars",
        "max_workers": "max_workers",
    },
}


@dataclass
class AnalysisConfig:
    """
    Defaults shared by one analysis session.

    Example:
        >>> config = AnalysisConfig.from_yaml("analysis.yaml")
        >>> build_topics(index, k=20, **config.as_kwargs("topics"))
    """

    num_samples: int = 8
    """Diverse samples per topic."""

    num_keywords: int = 10
    """Keywords per topic."""

    concept_samples: int = 100
    """Seed documents for concepts and spectra."""

    classifier_samples: int = 5
    """Generated examples per classifier label."""

    negative_multiplier: int = 1
    """Negative documents per positive one when training concepts."""

    concept_lambda: float = 1e-3
    spectrum_lambda: float = 1e-5
    classifier_lambda: float = 1e-3

    cv_folds: int = 4
    accuracy_threshold: float = 0.9

    max_batch_chars: int = DEFAULT_MAX_BATCH_CHARS
    """Approximate character budget per embedding call."""

    max_workers: Optional[int] = None
    """Maximum concurrent calls to external services (None lets the pool decide)."""

    def __post_init__(self):
        for name in ("num_samples", "num_keywords", "negative_multiplier"):
            if getattr(self, name) < 0:
                raise InvalidArgument(f"{name} must be non-negative (got {getattr(self, name)})")
        for name in ("concept_samples", "classifier_samples", "cv_folds", "max_batch_chars"):
            if getattr(self, name) < 1:
                raise InvalidArgument(f"{name} must be positive (got {getattr(self, name)})")
        for name in ("concept_lambda", "spectrum_lambda", "classifier_lambda"):
            if getattr(self, name) <= 0:
                raise InvalidArgument(f"{name} must be positive (got {getattr(self, name)})")
        if not 0.0 <= self.accuracy_threshold <= 1.0:
            raise InvalidArgument(
                f"accuracy_threshold must be within 0 and 1 (got {self.accuracy_threshold})"
            )
        if self.max_workers is not None and self.max_workers < 1:
            raise InvalidArgument(f"max_workers must be positive (got {self.max_workers})")

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]]) -> "AnalysisConfig":
        """Build a config from a dictionary; missing keys keep their defaults."""
        config = dict(config or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise InvalidArgument(f"Unknown configuration keys: {unknown}")
        return cls(**config)

    @classmethod
    def from_yaml(cls, path: str) -> "AnalysisConfig":
        """Load a config from a YAML file."""
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
        if config is not None and not isinstance(config, dict):
            raise InvalidArgument(f"Configuration in {path} must be a mapping")
        return cls.from_dict(config)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_yaml(self, path: str) -> None:
        """Save the config to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        logger.info("Configuration saved to %s", path)

    def as_kwargs(self, section: str) -> Dict[str, Any]:
        """
        Keyword arguments for one entry point.

        Args:
            section: One of "index", "topics", "concept", "spectrum", "classifier".

        Returns:
            Dictionary to unpack into `build_index`, `build_topics`,
            `train_concept`, `train_spectrum` or `train_classifier`.
        """
        if section not in _SECTIONS:
            raise InvalidArgument(
                f"Unknown configuration section {section!r}. Available: {list(_SECTIONS)}"
            )
        return {kwarg: getattr(self, name) for kwarg, name in _SECTIONS[section].items()}
