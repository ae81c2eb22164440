"""Apply trained probes to the embeddings of an index."""

from typing import Any, List, Union
import logging
import numpy as np

from .data_structures import ProbeState
from .exceptions import IndexIdentityMismatch, InvalidArgument, NotTrainedError, warn
from .index import DocumentIndex

logger = logging.getLogger(__name__)


def sigmoid(x: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Numerically stable logistic function."""
    x = np.asarray(x, dtype=np.float64)
    z = np.exp(-np.abs(x))
    out = np.where(x >= 0, 1.0 / (1.0 + z), z / (1.0 + z))
    return out if out.ndim else float(out)


def softmax(x: np.ndarray, axis: int = -1) -> np.ndarray:
    """Softmax along `axis` (rows by default), stable for large logits."""
    x = np.asarray(x, dtype=np.float64)
    shifted = x - x.max(axis=axis, keepdims=True)
    exp_x = np.exp(shifted)
    return exp_x / exp_x.sum(axis=axis, keepdims=True)


def check_index_identity(index: DocumentIndex, probe: Any) -> None:
    """Warn when a probe is used with an index other than its training index."""
    if index.identity != probe.index_identity:
        warn(
            IndexIdentityMismatch,
            f"Potential error: Index ID mismatch! (Provided Index: {index.identity}, "
            f"Used for training: {probe.index_identity})",
            logger,
        )


def score(
    index: DocumentIndex,
    probe: Any,
    *,
    check_index: bool = True,
    return_labels: bool = False,
) -> Union[np.ndarray, List[str]]:
    """
    Score every document of `index` with a trained probe.

    Concepts and spectra return ``sigmoid(E @ coefficients)`` with shape
    (n_docs,); values near 0.5 are ambiguous. Classifiers return row-wise
    probabilities of shape (n_docs, n_labels), or the most likely label per
    document when `return_labels` is set.

    Args:
        index: Index whose embeddings are scored.
        probe: TrainedConcept, TrainedSpectrum or TrainedClassifier.
        check_index: Warn if `index` is not the training index.
        return_labels: For classifiers, return label strings instead of probabilities.
    """
    if probe.state is not ProbeState.TRAINED:
        raise NotTrainedError(
            f"{type(probe).__name__} is not trained. Coefficients are missing. Use train()."
        )
    if check_index:
        check_index_identity(index, probe)

    coefficients = probe.coefficients
    if coefficients.shape[0] != index.dim:
        raise InvalidArgument(
            f"Embedding dimension mismatch (index: {index.dim}, probe: {coefficients.shape[0]})"
        )

    logits = index.embeddings @ coefficients
    if coefficients.ndim == 1:
        if return_labels:
            raise InvalidArgument("return_labels is only available for classifiers")
        return sigmoid(logits)

    probabilities = softmax(logits, axis=1)
    if return_labels:
        return [probe.labels[i] for i in probabilities.argmax(axis=1)]
    return probabilities
