"""Protocol definitions for external collaborators."""

from typing import Protocol, Mapping, Optional, Sequence
import numpy as np

from .utils import CostTracker


class Embedder(Protocol):
    """Maps texts to dense vectors."""

    def encode(
        self, texts: Sequence[str], cost_tracker: Optional[CostTracker] = None
    ) -> np.ndarray:
        """
        Encode texts to embeddings.

        Args:
            texts: Sequence of texts.
            cost_tracker: Optional accumulator for the cost of the call.

        Returns:
            Array of shape (n_texts, embedding_dim). Rows need not be normalized.
        """
        ...


class Generator(Protocol):
    """Generates text from a prompt template."""

    def generate(
        self,
        template: str,
        variables: Mapping[str, str],
        cost_tracker: Optional[CostTracker] = None,
    ) -> str:
        """
        Render a template with variables and return the generated text.

        Args:
            template: Prompt template with ``{placeholder}`` fields.
            variables: Values for the template placeholders.
            cost_tracker: Optional accumulator for the cost of the call.

        Returns:
            Generated text.
        """
        ...


class Reducer(Protocol):
    """Projects a precomputed distance matrix to 2-D coordinates."""

    def fit_transform(self, X: np.ndarray) -> np.ndarray:
        """
        Fit reducer and transform a distance matrix.

        Args:
            X: Square distance matrix of shape (n_docs, n_docs).

        Returns:
            Coordinates of shape (n_docs, 2).
        """
        ...
