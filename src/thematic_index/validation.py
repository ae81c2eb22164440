"""Regularized logistic models and k-fold cross-validation."""

from typing import List, Optional
import logging
import threading
import numpy as np
from sklearn.linear_model import LogisticRegression

from .exceptions import InvalidArgument
from .utils import RandomState, as_rng, parallel_map

logger = logging.getLogger(__name__)


def _logistic_model(lambda_: float, n_obs: int) -> LogisticRegression:
    """
    L2-regularized logistic regression without intercept.

    The penalty `lambda_` is scaled with the number of observations, so the same
    value behaves alike for small and large training sets.
    """
    if lambda_ <= 0:
        raise InvalidArgument(f"lambda_ must be positive (got {lambda_})")
    return LogisticRegression(
        C=1.0 / (lambda_ * n_obs),
        fit_intercept=False,
        solver="lbfgs",
        max_iter=1000,
    )


def fit_logistic(X: np.ndarray, y: np.ndarray, lambda_: float = 1e-3) -> np.ndarray:
    """
    Fit a binary logistic model on labels -1/+1.

    Returns:
        Coefficient vector of shape (n_features,); positive scores mean +1.
    """
    y = np.asarray(y)
    if set(np.unique(y).tolist()) != {-1, 1}:
        raise InvalidArgument("Binary labels must contain both -1 and +1")
    model = _logistic_model(lambda_, X.shape[0]).fit(X, y)
    return model.coef_.ravel().astype(np.float32)


def fit_multinomial(
    X: np.ndarray, y: np.ndarray, n_classes: int, lambda_: float = 1e-3
) -> np.ndarray:
    """
    Fit a multinomial logistic model on labels 0..n_classes-1.

    Returns:
        Coefficient matrix of shape (n_features, n_classes). For two classes the
        binary solution `w` is split into columns ``[-w/2, w/2]`` so that the
        softmax of the two columns equals the binary sigmoid.
    """
    y = np.asarray(y)
    present = np.unique(y)
    if present.size != n_classes or present.min() != 0 or present.max() != n_classes - 1:
        raise InvalidArgument(
            f"Training labels must cover every class 0..{n_classes - 1} (got {present.tolist()})"
        )
    model = _logistic_model(lambda_, X.shape[0]).fit(X, y)
    if n_classes == 2:
        w = model.coef_.ravel()
        coefficients = np.column_stack([-w / 2, w / 2])
    else:
        coefficients = model.coef_.T
    return coefficients.astype(np.float32)


def create_folds(k: int, n_obs: int, random_state: RandomState = None) -> List[np.ndarray]:
    """
    Split ``range(n_obs)`` into `k` random, non-empty, contiguous folds.

    Args:
        k: Number of folds.
        n_obs: Number of observations.
        random_state: Seed or Generator for the shuffle.

    Returns:
        List of `k` index arrays whose union is ``range(n_obs)``.
    """
    if k < 1:
        raise InvalidArgument(f"k must be greater than 0 (got {k})")
    if n_obs < k:
        raise InvalidArgument(f"n_obs must be at least k (got n_obs={n_obs}, k={k})")
    indices = as_rng(random_state).permutation(n_obs)
    return np.array_split(indices, k)


def cross_validate_accuracy(
    X: np.ndarray,
    y: np.ndarray,
    *,
    k: int = 4,
    lambda_: float = 1e-5,
    multinomial: bool = False,
    random_state: RandomState = None,
    max_workers: Optional[int] = None,
) -> float:
    """
    Mean k-fold accuracy of the logistic model used for probes.

    Args:
        X: Features of shape (n_obs, n_features).
        y: Labels, -1/+1 for binary models or class ids for multinomial ones.
        k: Number of folds.
        lambda_: Regularization strength.
        multinomial: Fit a multi-class model instead of a binary one.
        random_state: Seed or Generator for the fold shuffle.
        max_workers: Maximum folds fitted concurrently.

    Returns:
        Average accuracy across folds.
    """
    X = np.asarray(X)
    y = np.asarray(y)
    if X.shape[0] != y.shape[0]:
        raise InvalidArgument(f"X and y size mismatch ({X.shape[0]} vs {y.shape[0]})")
    if lambda_ <= 0:
        raise InvalidArgument(f"lambda_ must be positive (got {lambda_})")

    n_obs = X.shape[0]
    folds = create_folds(k, n_obs, random_state=random_state)
    accuracies = np.zeros(k)
    lock = threading.Lock()

    def _run_fold(i: int) -> None:
        test_idx = folds[i]
        train_mask = np.ones(n_obs, dtype=bool)
        train_mask[test_idx] = False
        X_train, y_train = X[train_mask], y[train_mask]
        if np.unique(y_train).size < 2:
            # nothing to discriminate, predict the only class seen
            y_pred = np.full(test_idx.size, y_train[0] if y_train.size else y[test_idx][0])
        else:
            model = _logistic_model(lambda_, X_train.shape[0]).fit(X_train, y_train)
            if multinomial:
                y_pred = model.predict(X[test_idx])
            else:
                y_pred = np.where(X[test_idx] @ model.coef_.ravel() >= 0.0, 1, -1)
        if multinomial:
            correct = np.sum(y_pred == y[test_idx])
        else:
            correct = np.sum((y_pred >= 0) == (y[test_idx] >= 0))
        with lock:
            accuracies[i] = correct / test_idx.size

    parallel_map(_run_fold, range(k), max_workers=max_workers)
    logger.debug("Accuracy across folds: %s", accuracies.tolist())
    return float(accuracies.mean())
