"""Keyword extraction into a sparse document-term weight matrix."""

from typing import Iterable, List, Optional, Sequence, Tuple
import re
import numpy as np
from scipy import sparse
from sklearn.feature_extraction.text import CountVectorizer, ENGLISH_STOP_WORDS

from .exceptions import InvalidArgument


TOKEN_PATTERN = re.compile(r"(?u)\b\w+\b")


class KeywordTokenizer:
    """
    Lower-cases, tokenizes, filters and stems a document.

    Stop words are removed before stemming, so the stop-word list is matched
    against surface forms.
    """

    def __init__(
        self,
        min_length: int = 2,
        stopwords: Optional[Iterable[str]] = None,
        stemmer_language: Optional[str] = "english",
    ):
        """
        Args:
            min_length: Tokens shorter than this are dropped.
            stopwords: Words to drop. Defaults to scikit-learn's English list.
            stemmer_language: Snowball stemmer language; None disables stemming.
        """
        if min_length < 1:
            raise InvalidArgument(f"min_length must be >= 1 (got {min_length})")
        self.min_length = min_length
        self.stopwords = frozenset(ENGLISH_STOP_WORDS if stopwords is None else stopwords)
        if stemmer_language is None:
            self.stemmer = None
        else:
            from nltk.stem.snowball import SnowballStemmer

            self.stemmer = SnowballStemmer(stemmer_language)

    def __call__(self, text: str) -> List[str]:
        tokens = [
            t for t in TOKEN_PATTERN.findall(text.lower())
            if len(t) >= self.min_length and t not in self.stopwords
        ]
        if self.stemmer is not None:
            tokens = [self.stemmer.stem(t) for t in tokens]
        return tokens


def _passthrough(tokens: List[str]) -> List[str]:
    return tokens


def build_keywords(
    documents: Sequence[str],
    *,
    min_length: int = 2,
    stopwords: Optional[Iterable[str]] = None,
    stemmer_language: Optional[str] = "english",
) -> Tuple[sparse.csr_matrix, List[str]]:
    """
    Extract keywords from a collection of documents.

    Each kept token contributes ``1 / n_tokens`` of its document, so the weights
    of one document sum to 1 (or 0 if nothing survives filtering).

    Args:
        documents: Texts to extract keywords from.
        min_length: Minimum token length.
        stopwords: Words to exclude. Defaults to English stop words.
        stemmer_language: Language for stemming, or None to disable it.

    Returns:
        Sparse matrix of shape (n_docs, n_keywords) and the sorted vocabulary.
    """
    if len(documents) == 0:
        raise InvalidArgument("No documents provided!")

    tokenizer = KeywordTokenizer(
        min_length=min_length, stopwords=stopwords, stemmer_language=stemmer_language
    )
    tokenized = [tokenizer(doc) for doc in documents]
    if not any(tokenized):
        return sparse.csr_matrix((len(documents), 0), dtype=np.float32), []

    vectorizer = CountVectorizer(analyzer=_passthrough, lowercase=False)
    counts = vectorizer.fit_transform(tokenized).astype(np.float32)
    vocabulary = vectorizer.get_feature_names_out().tolist()

    lengths = np.asarray(counts.sum(axis=1)).ravel()
    lengths[lengths == 0] = 1  # empty documents keep an all-zero row
    weights = sparse.diags(1.0 / lengths).dot(counts)
    return sparse.csr_matrix(weights, dtype=np.float32), vocabulary
