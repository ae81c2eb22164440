"""Concrete adapters for the external embedding, generation and projection services."""

from typing import Callable, Dict, Mapping, Optional, Sequence
import logging
import os
import numpy as np

from .utils import CostTracker

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedder:
    """Wrapper for sentence-transformers models with optional preprocessing."""

    def __init__(
        self,
        model_name: str = "all-MiniLM-L12-v2",
        preprocessor: Optional[Callable[[str], str]] = None,
    ):
        """
        Initialize sentence transformer embedder.

        Args:
            model_name: Name of the sentence-transformers model.
            preprocessor: Optional function to preprocess text before encoding.
        """
        from sentence_transformers import SentenceTransformer

        self.name = model_name
        self.model = SentenceTransformer(model_name)
        self.preprocessor = preprocessor

    def encode(
        self, texts: Sequence[str], cost_tracker: Optional[CostTracker] = None
    ) -> np.ndarray:
        """Encode texts to unit-normalized embeddings. Local models cost nothing."""
        if self.preprocessor:
            texts = [self.preprocessor(t) for t in texts]
        return self.model.encode(
            list(texts), show_progress_bar=False, normalize_embeddings=True
        )

    def __repr__(self) -> str:
        return f"SentenceTransformerEmbedder(model_name='{self.name}')"


def e5_base_embedder() -> SentenceTransformerEmbedder:
    """Convenience function for the e5-base-v2 embedding model."""
    return SentenceTransformerEmbedder(
        model_name="intfloat/e5-base-v2",
        preprocessor=lambda x: f"query: {x}",
    )


class OpenAIGenerator:
    """Text generation through the OpenAI Chat Completions API."""

    # USD per 1K tokens
    PRICING: Dict[str, Dict[str, float]] = {
        "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
        "gpt-4o": {"input": 0.0025, "output": 0.01},
        "gpt-4.1-mini": {"input": 0.0004, "output": 0.0016},
        "gpt-4.1": {"input": 0.002, "output": 0.008},
    }

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        max_tokens: int = 512,
        api_key: Optional[str] = None,
        client=None,
    ):
        """
        Initialize OpenAI generator.

        Args:
            model: Chat model name.
            temperature: Sampling temperature.
            max_tokens: Maximum tokens per response.
            api_key: API key; defaults to the OPENAI_API_KEY environment variable.
            client: Pre-built OpenAI client (mainly for testing).
        """
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        if client is None:
            from openai import OpenAI

            api_key = api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                logger.warning("OPENAI_API_KEY not set; calls will fail until provided.")
            client = OpenAI(api_key=api_key)
        self.client = client

    def generate(
        self,
        template: str,
        variables: Mapping[str, str],
        cost_tracker: Optional[CostTracker] = None,
    ) -> str:
        """Render the template and return the model's reply."""
        prompt = template.format(**variables)
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if cost_tracker is not None and response.usage is not None:
            cost_tracker.add(
                self.call_cost(
                    response.usage.prompt_tokens, response.usage.completion_tokens
                )
            )
        return response.choices[0].message.content or ""

    def call_cost(self, input_tokens: int, output_tokens: int) -> float:
        """Cost of one call in USD, falling back to gpt-4o-mini rates."""
        rates = self.PRICING.get(self.model, self.PRICING["gpt-4o-mini"])
        return (input_tokens / 1000) * rates["input"] + (output_tokens / 1000) * rates["output"]

    def __repr__(self) -> str:
        return f"OpenAIGenerator(model='{self.model}')"


class UMAPReducer:
    """Wrapper for UMAP over a precomputed distance matrix."""

    def __init__(
        self,
        n_neighbors: int = 15,
        min_dist: float = 0.1,
        random_state: Optional[int] = 42,
    ):
        """
        Initialize UMAP reducer.

        Args:
            n_neighbors: Number of neighbors for UMAP.
            min_dist: Minimum distance for UMAP.
            random_state: Random seed for reproducibility.
        """
        import umap

        self.name = f"UMAP(n_neighbors={n_neighbors})"
        self.reducer = umap.UMAP(
            n_components=2,
            n_neighbors=n_neighbors,
            min_dist=min_dist,
            metric="precomputed",
            random_state=random_state,
            n_jobs=1 if random_state else -1,
        )

    def fit_transform(self, X: np.ndarray) -> np.ndarray:
        """Fit and project a distance matrix to 2-D."""
        return self.reducer.fit_transform(X)

    def __repr__(self) -> str:
        return self.name
