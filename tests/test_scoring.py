"""Tests for sigmoid, softmax and probe scoring."""

from types import SimpleNamespace

import numpy as np
import pytest

from thematic_index.data_structures import ProbeState
from thematic_index.exceptions import IndexIdentityMismatch, InvalidArgument, NotTrainedError
from thematic_index.scoring import score, sigmoid, softmax


def make_probe(coefficients, identity="probe-index", labels=None, state=ProbeState.TRAINED):
    return SimpleNamespace(
        state=state,
        coefficients=None if coefficients is None else np.asarray(coefficients, dtype=np.float32),
        index_identity=identity,
        labels=labels,
    )


def test_sigmoid_values():
    assert sigmoid(0.0) == 0.5
    assert isinstance(sigmoid(0.0), float)
    np.testing.assert_allclose(sigmoid(np.array([-1000.0, 1000.0])), [0.0, 1.0])
    assert sigmoid(2.0) + sigmoid(-2.0) == pytest.approx(1.0)


def test_softmax_rows_sum_to_one():
    logits = np.array([[1.0, 2.0, 3.0], [1000.0, 0.0, -1000.0]])
    probabilities = softmax(logits, axis=1)
    np.testing.assert_allclose(probabilities.sum(axis=1), 1.0)
    assert probabilities[1, 0] == pytest.approx(1.0)
    assert np.all(np.diff(probabilities[0]) > 0)


def test_score_binary_probe(make_index):
    index = make_index([[1.0, 0.0], [-1.0, 0.0], [0.0, 1.0]], identity="probe-index")
    scores = score(index, make_probe([3.0, 0.0]))
    assert scores.shape == (3,)
    assert scores[0] > 0.9
    assert scores[1] < 0.1
    assert scores[2] == pytest.approx(0.5)


def test_score_classifier_probe(make_index):
    index = make_index([[1.0, 0.0], [0.0, 1.0]], identity="probe-index")
    probe = make_probe([[5.0, 0.0], [0.0, 5.0]], labels=["first", "second"])
    probabilities = score(index, probe)
    assert probabilities.shape == (2, 2)
    np.testing.assert_allclose(probabilities.sum(axis=1), 1.0, rtol=1e-6)
    assert score(index, probe, return_labels=True) == ["first", "second"]


def test_score_requires_trained_probe(make_index):
    index = make_index([[1.0, 0.0]], identity="probe-index")
    with pytest.raises(NotTrainedError):
        score(index, make_probe(None, state=ProbeState.UNTRAINED))
    with pytest.raises(NotTrainedError):
        score(index, make_probe(None, state=ProbeState.PARTIALLY_MATERIALIZED))


def test_score_dimension_mismatch(make_index):
    index = make_index([[1.0, 0.0]], identity="probe-index")
    with pytest.raises(InvalidArgument):
        score(index, make_probe([1.0, 0.0, 0.0]))


def test_score_labels_only_for_classifiers(make_index):
    index = make_index([[1.0, 0.0]], identity="probe-index")
    with pytest.raises(InvalidArgument):
        score(index, make_probe([1.0, 0.0]), return_labels=True)


def test_score_warns_on_identity_mismatch(make_index):
    index = make_index([[1.0, 0.0]], identity="another-index")
    with pytest.warns(IndexIdentityMismatch, match="Index ID mismatch"):
        scores = score(index, make_probe([1.0, 0.0]))
    assert scores.shape == (1,)


def test_score_skips_identity_check(make_index, recwarn):
    index = make_index([[1.0, 0.0]], identity="another-index")
    score(index, make_probe([1.0, 0.0]), check_index=False)
    assert not [w for w in recwarn if issubclass(w.category, IndexIdentityMismatch)]
