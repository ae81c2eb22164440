"""Tests for keyword extraction."""

import numpy as np
import pytest

from thematic_index.exceptions import InvalidArgument
from thematic_index.keywords import KeywordTokenizer, build_keywords


def test_tokenizer_lowercases_filters_and_stems():
    tokenizer = KeywordTokenizer()
    tokens = tokenizer("The Cats are RUNNING in a park")
    # "the", "are", "in" are stop words and "a" is too short
    assert tokens == ["cat", "run", "park"]


def test_tokenizer_without_stemming_keeps_surface_forms():
    tokenizer = KeywordTokenizer(stemmer_language=None, stopwords=[])
    assert tokenizer("Running dogs") == ["running", "dogs"]


def test_tokenizer_min_length():
    tokenizer = KeywordTokenizer(min_length=4, stopwords=[], stemmer_language=None)
    assert tokenizer("big dogs bark loudly") == ["dogs", "bark", "loudly"]
    with pytest.raises(InvalidArgument):
        KeywordTokenizer(min_length=0)


def test_weights_sum_to_one_per_document():
    weights, vocabulary = build_keywords(
        ["cats chase mice", "dogs chase cats", "birds sing"]
    )
    assert weights.shape == (3, len(vocabulary))
    np.testing.assert_allclose(np.asarray(weights.sum(axis=1)).ravel(), 1.0, rtol=1e-6)
    assert vocabulary == sorted(vocabulary)


def test_repeated_tokens_get_proportional_weight():
    weights, vocabulary = build_keywords(["apple apple banana"], stemmer_language=None)
    row = weights.toarray()[0]
    assert row[vocabulary.index("apple")] == pytest.approx(2 / 3)
    assert row[vocabulary.index("banana")] == pytest.approx(1 / 3)


def test_document_without_keywords_has_empty_row():
    weights, vocabulary = build_keywords(["the and of", "market news"])
    assert weights.shape[0] == 2
    assert weights[0].nnz == 0
    assert weights[1].sum() == pytest.approx(1.0)


def test_no_keywords_at_all():
    weights, vocabulary = build_keywords(["the a", "of"])
    assert weights.shape == (2, 0)
    assert vocabulary == []


def test_empty_documents_rejected():
    with pytest.raises(InvalidArgument):
        build_keywords([])
