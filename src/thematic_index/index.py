"""DocumentIndex: documents, embeddings, distances, keywords and topic levels."""

from typing import Any, Dict, List, Mapping, Optional, Sequence
import logging
import math
import uuid
import numpy as np
from scipy import sparse
from sklearn.metrics.pairwise import cosine_distances
from sklearn.preprocessing import normalize

from .data_structures import ClusteringResult, LevelKey, TopicMetadata
from .exceptions import InvalidArgument, UnknownLevel
from .keywords import build_keywords
from .protocols import Embedder, Reducer
from .utils import CostTracker, parallel_map

logger = logging.getLogger(__name__)


DEFAULT_MAX_BATCH_CHARS = 80_000


class DocumentIndex:
    """
    Central store of one analysis session.

    Document ids are positions in `documents`; every matrix is row-aligned with it.
    `topic_levels` maps a level key (topic count or custom name) to a complete
    partition of the documents into topics.
    """

    def __init__(
        self,
        documents: Sequence[str],
        embeddings: np.ndarray,
        distances: Optional[np.ndarray] = None,
        *,
        keyword_weights: Optional[sparse.spmatrix] = None,
        keyword_vocabulary: Optional[Sequence[str]] = None,
        identity: Optional[str] = None,
        projection: Optional[np.ndarray] = None,
    ):
        """
        Initialize a document index.

        Args:
            documents: Document texts.
            embeddings: Array of shape (n_docs, dim).
            distances: Pairwise cosine distances (n_docs, n_docs); computed if None.
            keyword_weights: Sparse (n_docs, n_keywords) weights.
            keyword_vocabulary: Keywords matching the columns of `keyword_weights`.
            identity: Session token; a random one is generated if None.
            projection: Optional 2-D coordinates (n_docs, 2).
        """
        if len(documents) == 0:
            raise InvalidArgument("No documents provided!")
        n_docs = len(documents)

        embeddings = np.asarray(embeddings, dtype=np.float32)
        if embeddings.ndim != 2 or embeddings.shape[0] != n_docs:
            raise InvalidArgument(
                f"embeddings must have shape (n_docs={n_docs}, dim) (got {embeddings.shape})"
            )

        if distances is None:
            distances = pairwise_cosine_distances(embeddings)
        distances = np.asarray(distances, dtype=np.float32)
        if distances.shape != (n_docs, n_docs):
            raise InvalidArgument(
                f"distances must have shape ({n_docs}, {n_docs}) (got {distances.shape})"
            )

        if keyword_weights is None:
            keyword_weights = sparse.csr_matrix((n_docs, 0), dtype=np.float32)
            keyword_vocabulary = []
        keyword_weights = sparse.csr_matrix(keyword_weights)
        keyword_vocabulary = list(keyword_vocabulary or [])
        if keyword_weights.shape != (n_docs, len(keyword_vocabulary)):
            raise InvalidArgument(
                f"keyword_weights must have shape ({n_docs}, {len(keyword_vocabulary)}) "
                f"(got {keyword_weights.shape})"
            )

        self.identity = identity or uuid.uuid4().hex
        self.documents: List[str] = list(documents)
        self.embeddings = embeddings
        self.distances = distances
        self.keyword_weights = keyword_weights
        self.keyword_vocabulary: List[str] = keyword_vocabulary
        self.clustering: Optional[ClusteringResult] = None
        self.topic_levels: Dict[LevelKey, List[TopicMetadata]] = {}
        self.projection: Optional[np.ndarray] = None
        if projection is not None:
            self.set_projection(projection)

    def __len__(self) -> int:
        return len(self.documents)

    def __repr__(self) -> str:
        projection_str = "OK" if self.projection is not None else "None"
        levels_str = ", ".join(str(k) for k in self.topic_levels) or "None"
        return (
            f"DocumentIndex(documents={len(self)}, projection={projection_str}, "
            f"topic_levels={levels_str})"
        )

    @property
    def dim(self) -> int:
        """Embedding dimension."""
        return int(self.embeddings.shape[1])

    def get_level(self, level_key: LevelKey) -> List[TopicMetadata]:
        """Return the topics of a level, raising UnknownLevel if it was never built."""
        if level_key not in self.topic_levels:
            raise UnknownLevel(
                f"Topic level {level_key!r} not found in index - run build_topics() first. "
                f"Available levels: {list(self.topic_levels)}"
            )
        return self.topic_levels[level_key]

    def get_documents(self, doc_ids: Sequence[int]) -> List[str]:
        """Texts of the given document ids."""
        return [self.documents[i] for i in doc_ids]

    def get_keywords(self, keyword_ids: Sequence[int]) -> List[str]:
        """Vocabulary entries of the given keyword ids."""
        return [self.keyword_vocabulary[i] for i in keyword_ids]

    def check_doc_ids(self, doc_ids: Sequence[int]) -> None:
        """Raise InvalidArgument if any id is outside ``[0, n_docs)``."""
        ids = np.asarray(doc_ids)
        if ids.size and (ids.min() < 0 or ids.max() >= len(self)):
            raise InvalidArgument(
                f"Document ids must be within 0 and {len(self) - 1} "
                f"(got {ids.min()}..{ids.max()})"
            )

    def set_projection(self, projection: np.ndarray) -> None:
        """Store 2-D coordinates produced by a projection service."""
        projection = np.asarray(projection, dtype=np.float32)
        if projection.shape != (len(self), 2):
            raise InvalidArgument(
                f"projection must have shape ({len(self)}, 2) (got {projection.shape})"
            )
        self.projection = projection


def pairwise_cosine_distances(embeddings: np.ndarray) -> np.ndarray:
    """Symmetric cosine distance matrix with an exact zero diagonal."""
    distances = cosine_distances(embeddings).astype(np.float32)
    np.clip(distances, 0.0, 2.0, out=distances)
    distances = (distances + distances.T) / 2
    np.fill_diagonal(distances, 0.0)
    return distances


def embed_texts(
    embedder: Embedder,
    texts: Sequence[str],
    *,
    max_batch_chars: int = DEFAULT_MAX_BATCH_CHARS,
    max_workers: Optional[int] = None,
    cost_tracker: Optional[CostTracker] = None,
) -> np.ndarray:
    """
    Embed texts in size-bounded batches dispatched concurrently.

    Batches hold roughly `max_batch_chars` characters each. Rows are returned in
    input order and L2-normalized.
    """
    texts = list(texts)
    if not texts:
        raise InvalidArgument("No texts to embed!")
    if max_batch_chars <= 0:
        raise InvalidArgument(f"max_batch_chars must be positive (got {max_batch_chars})")

    avg_length = max(sum(len(t) for t in texts) / len(texts), 1.0)
    batch_size = max(1, math.floor(max_batch_chars / avg_length))
    batches = [texts[i:i + batch_size] for i in range(0, len(texts), batch_size)]

    def _embed(batch: List[str]) -> np.ndarray:
        result = np.asarray(embedder.encode(batch, cost_tracker=cost_tracker))
        if result.ndim != 2 or result.shape[0] != len(batch):
            raise InvalidArgument(
                f"Embedder returned shape {result.shape} for a batch of {len(batch)} texts"
            )
        return result

    embeddings = np.vstack(parallel_map(_embed, batches, max_workers=max_workers))
    return normalize(embeddings.astype(np.float32), norm="l2")


def build_index(
    documents: Sequence[str],
    embedder: Embedder,
    *,
    identity: Optional[str] = None,
    max_batch_chars: int = DEFAULT_MAX_BATCH_CHARS,
    max_workers: Optional[int] = None,
    keyword_kwargs: Optional[Mapping[str, Any]] = None,
    verbose: bool = True,
) -> DocumentIndex:
    """
    Build an index of the given documents: embeddings, distances and keywords.

    Args:
        documents: Texts to index. Split very long texts into chunks first.
        embedder: Embedding service.
        identity: Identifier of the index; random if None.
        max_batch_chars: Approximate character budget per embedding call.
        max_workers: Maximum concurrent embedding calls.
        keyword_kwargs: Extra arguments for `build_keywords`.
        verbose: Log progress at INFO level.

    Returns:
        A new DocumentIndex.
    """
    if len(documents) == 0:
        raise InvalidArgument("No documents provided!")

    cost_tracker = CostTracker()
    if verbose:
        logger.info("Embedding %d documents...", len(documents))
    embeddings = embed_texts(
        embedder,
        documents,
        max_batch_chars=max_batch_chars,
        max_workers=max_workers,
        cost_tracker=cost_tracker,
    )
    if verbose:
        logger.info("Done embedding. Total cost: $%.3f", cost_tracker.total)
        logger.info("Computing pairwise distances...")
    distances = pairwise_cosine_distances(embeddings)

    if verbose:
        logger.info("Extracting keywords...")
    keyword_weights, keyword_vocabulary = build_keywords(documents, **(keyword_kwargs or {}))

    return DocumentIndex(
        documents,
        embeddings,
        distances,
        keyword_weights=keyword_weights,
        keyword_vocabulary=keyword_vocabulary,
        identity=identity,
    )


def prepare_projection(
    index: DocumentIndex,
    reducer: Optional[Reducer] = None,
    *,
    verbose: bool = True,
) -> DocumentIndex:
    """
    Fill `index.projection` with 2-D coordinates if it is still empty.

    Args:
        index: The document index.
        reducer: Projection over the precomputed distance matrix. Defaults to UMAP.
        verbose: Log progress at INFO level.

    Returns:
        The same index.
    """
    if index.projection is None:
        if reducer is None:
            from .components import UMAPReducer

            reducer = UMAPReducer()
        if verbose:
            logger.info("Computing 2-D projection with %r...", reducer)
        index.set_projection(reducer.fit_transform(index.distances))
    return index
