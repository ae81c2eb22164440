"""Tests for logistic fits, folds and cross-validation."""

import numpy as np
import pytest

from thematic_index.exceptions import InvalidArgument
from thematic_index.validation import (
    create_folds,
    cross_validate_accuracy,
    fit_logistic,
    fit_multinomial,
)


@pytest.fixture
def separable():
    rng = np.random.default_rng(0)
    positives = rng.normal(size=(20, 5)) * 0.1 + np.array([1.0, 0, 0, 0, 0])
    negatives = rng.normal(size=(20, 5)) * 0.1 - np.array([1.0, 0, 0, 0, 0])
    X = np.vstack([positives, negatives])
    y = np.concatenate([np.ones(20), -np.ones(20)]).astype(int)
    return X, y


@pytest.mark.parametrize("k,n_obs", [(4, 101), (4, 4), (1, 7), (3, 10)])
def test_create_folds_partition(k, n_obs):
    folds = create_folds(k, n_obs, random_state=0)
    assert len(folds) == k
    assert all(len(fold) > 0 for fold in folds)
    assert sorted(np.concatenate(folds).tolist()) == list(range(n_obs))
    sizes = [len(fold) for fold in folds]
    assert max(sizes) - min(sizes) <= 1


def test_create_folds_is_seeded():
    first = create_folds(4, 20, random_state=1)
    second = create_folds(4, 20, random_state=1)
    for a, b in zip(first, second):
        np.testing.assert_array_equal(a, b)


@pytest.mark.parametrize("k,n_obs", [(0, 5), (-1, 5), (6, 5)])
def test_create_folds_rejects_invalid(k, n_obs):
    with pytest.raises(InvalidArgument):
        create_folds(k, n_obs)


def test_fit_logistic_direction(separable):
    X, y = separable
    coefficients = fit_logistic(X, y, lambda_=1e-3)
    assert coefficients.shape == (5,)
    assert coefficients.dtype == np.float32
    assert coefficients[0] > 0
    assert np.all(np.sign(X @ coefficients) == y)


def test_fit_logistic_requires_both_classes(separable):
    X, _ = separable
    with pytest.raises(InvalidArgument):
        fit_logistic(X, np.ones(len(X), dtype=int))
    with pytest.raises(InvalidArgument):
        fit_logistic(X, np.r_[np.zeros(20), np.ones(20)].astype(int))


def test_fit_logistic_rejects_non_positive_lambda(separable):
    X, y = separable
    with pytest.raises(InvalidArgument):
        fit_logistic(X, y, lambda_=0.0)


def test_fit_multinomial_three_classes():
    X = np.vstack([np.eye(3)[i] + np.zeros((6, 3)) for i in range(3)])
    y = np.repeat(np.arange(3), 6)
    coefficients = fit_multinomial(X, y, 3, lambda_=1e-3)
    assert coefficients.shape == (3, 3)
    np.testing.assert_array_equal((X @ coefficients).argmax(axis=1), y)


def test_fit_multinomial_binary_is_symmetric(separable):
    X, y = separable
    labels = (y > 0).astype(int)
    coefficients = fit_multinomial(X, labels, 2, lambda_=1e-3)
    assert coefficients.shape == (5, 2)
    np.testing.assert_allclose(coefficients[:, 0], -coefficients[:, 1])
    np.testing.assert_array_equal((X @ coefficients).argmax(axis=1), labels)


def test_fit_multinomial_requires_every_class(separable):
    X, y = separable
    with pytest.raises(InvalidArgument):
        fit_multinomial(X, (y > 0).astype(int), 3)


def test_cross_validation_on_separable_data(separable):
    X, y = separable
    accuracy = cross_validate_accuracy(X, y, k=4, lambda_=1e-3, random_state=0)
    assert accuracy == pytest.approx(1.0)


def test_cross_validation_multinomial(separable):
    X, y = separable
    accuracy = cross_validate_accuracy(
        X, (y > 0).astype(int), k=5, lambda_=1e-3, multinomial=True, random_state=0,
        max_workers=2,
    )
    assert accuracy == pytest.approx(1.0)


def test_cross_validation_on_noise_is_a_fraction():
    rng = np.random.default_rng(3)
    X = rng.normal(size=(40, 4))
    y = rng.choice([-1, 1], size=40)
    accuracy = cross_validate_accuracy(X, y, k=4, random_state=0)
    assert 0.0 <= accuracy <= 1.0


def test_cross_validation_single_class_training_split():
    X = np.array([[1.0], [2.0]])
    y = np.array([1, -1])
    # each training split holds one class only and predicts it, which is always wrong here
    assert cross_validate_accuracy(X, y, k=2, random_state=0) == pytest.approx(0.0)


def test_cross_validation_validates_input(separable):
    X, y = separable
    with pytest.raises(InvalidArgument):
        cross_validate_accuracy(X, y[:-1])
    with pytest.raises(InvalidArgument):
        cross_validate_accuracy(X, y, lambda_=-1.0)
    with pytest.raises(InvalidArgument):
        cross_validate_accuracy(X[:3], y[:3], k=4)
