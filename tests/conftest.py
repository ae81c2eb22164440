"""
Pytest configuration and shared fixtures for thematic-index tests.

This module provides:
- A deterministic fake embedder (hash-seeded noise plus keyword axes)
- A scripted fake generator that records every call
- Small document indexes with two well-separated clusters
"""

import hashlib
import threading

import numpy as np
import pytest

from thematic_index.index import DocumentIndex, build_index


# ============================================================================
# Fake collaborators
# ============================================================================

# word -> embedding axis; documents containing the word point along that axis
KEYWORD_AXES = {
    "sunny": 0,
    "cat": 1,
    "kitten": 1,
    "stock": 2,
    "market": 2,
    "green": 3,
    "gloomy": 7,
}


class FakeEmbedder:
    """
    Deterministic embedder for tests.

    Each text gets small noise seeded by its hash, plus a unit component on the
    axis of every keyword it contains. Every call is recorded.
    """

    def __init__(self, dim=8, noise=0.05, cost_per_text=0.0):
        self.dim = dim
        self.noise = noise
        self.cost_per_text = cost_per_text
        self.calls = []
        self._lock = threading.Lock()

    def encode(self, texts, cost_tracker=None):
        with self._lock:
            self.calls.append(list(texts))
        rows = []
        for text in texts:
            seed = int(hashlib.md5(text.encode("utf-8")).hexdigest()[:8], 16)
            vec = np.random.default_rng(seed).normal(scale=self.noise, size=self.dim)
            lowered = text.lower()
            for word, axis in KEYWORD_AXES.items():
                if word in lowered:
                    vec[axis] += 1.0
            rows.append(vec)
        if cost_tracker is not None and self.cost_per_text:
            cost_tracker.add(self.cost_per_text * len(texts))
        return np.vstack(rows)


def default_response(template, variables):
    """Scripted replies keyed on the variables a template uses."""
    if "lens" in variables:
        return f'"{variables["lens"]} {variables["statement"]}"'
    if "label" in variables:
        return f'"{variables["label"]} day"'
    first_keyword = variables["keywords"].split(",")[0].strip()
    if "topic name" in template:
        return f'{template}\n"About {first_keyword}"'
    return f"###\nDocuments about {first_keyword}."


class FakeGenerator:
    """Scripted generator recording (template, variables) for every call."""

    def __init__(self, respond=None, cost=0.01):
        self.respond = respond or default_response
        self.cost = cost
        self.calls = []
        self._lock = threading.Lock()

    def generate(self, template, variables, cost_tracker=None):
        with self._lock:
            self.calls.append((template, dict(variables)))
        if cost_tracker is not None:
            cost_tracker.add(self.cost)
        return self.respond(template, variables)


# ============================================================================
# Documents and indexes
# ============================================================================

CAT_DOCUMENTS = [
    "The cat sleeps on the warm sofa",
    "A kitten chases the cat toy",
    "My cat purrs loudly at night",
    "The kitten drinks milk from a bowl",
    "Our cat ignores the new kitten",
]

FINANCE_DOCUMENTS = [
    "The stock market fell sharply today",
    "Investors sold stock after the report",
    "The market rallied on strong earnings",
    "Stock prices rose in the morning market",
    "Bond and stock market volumes dropped",
]

WEATHER_DOCUMENTS = [
    "A sunny afternoon at the beach",
    "Sunny skies all weekend long",
    "A gloomy evening with heavy rain",
    "Gloomy clouds over the harbour",
]


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def documents():
    return CAT_DOCUMENTS + FINANCE_DOCUMENTS


@pytest.fixture
def index(documents, embedder):
    """Index of ten documents: 0-4 about cats, 5-9 about the stock market."""
    return build_index(documents, embedder, identity="two-clusters", verbose=False)


@pytest.fixture
def weather_index(embedder):
    """Index of four documents: 0-1 sunny, 2-3 gloomy."""
    return build_index(WEATHER_DOCUMENTS, embedder, identity="weather", verbose=False)


@pytest.fixture
def make_index():
    """Factory for small indexes with hand-made embeddings."""

    def _make(embeddings, documents=None, **kwargs):
        embeddings = np.asarray(embeddings, dtype=np.float32)
        if documents is None:
            documents = [f"Document {i}" for i in range(embeddings.shape[0])]
        return DocumentIndex(documents, embeddings, **kwargs)

    return _make
