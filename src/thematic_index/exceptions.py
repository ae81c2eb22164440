"""Exception and warning classes for thematic-index."""

import logging
import warnings
from typing import Type


class ThematicIndexError(RuntimeError):
    """Base exception for thematic-index errors."""
    pass


class InvalidArgument(ThematicIndexError, ValueError):
    """Error for negative counts, empty document sets and malformed inputs."""
    pass


class InvalidTopicIndex(ThematicIndexError):
    """Error when a topic index is not present in an assignment vector."""
    pass


class UnknownLevel(ThematicIndexError, KeyError):
    """Error when a topic level key is not present in the index."""

    def __str__(self) -> str:
        # KeyError quotes its message by default
        return str(self.args[0]) if self.args else ""


class MissingTemplate(ThematicIndexError):
    """Error when a generation template is requested but not configured."""
    pass


class NotTrainedError(ThematicIndexError):
    """Error when a probe is used before its coefficients exist."""
    pass


class IndexIdentityMismatch(UserWarning):
    """Probe is scored or retrained against a different index than it was trained on."""
    pass


class LowSeparability(UserWarning):
    """Cross-validated accuracy of a probe is below the acceptable threshold."""
    pass


def warn(category: Type[Warning], message: str, logger: logging.Logger) -> None:
    """Log a non-fatal issue and surface it through the warnings machinery."""
    logger.warning(message)
    warnings.warn(message, category, stacklevel=3)
