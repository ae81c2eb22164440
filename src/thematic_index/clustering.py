"""Hierarchical clustering of the document distance matrix."""

from typing import Optional
import logging
import numpy as np
from scipy.cluster.hierarchy import fcluster, linkage
from scipy.spatial.distance import squareform

from .data_structures import ClusteringResult, HierarchicalClustering
from .exceptions import InvalidArgument
from .index import DocumentIndex

logger = logging.getLogger(__name__)


def build_clustering(
    index: DocumentIndex,
    *,
    method: str = "complete",
    force: bool = False,
    verbose: bool = False,
) -> ClusteringResult:
    """
    Build the dendrogram of an index once and cache it on `index.clustering`.

    Args:
        index: The document index.
        method: SciPy linkage method.
        force: Discard a cached dendrogram and rebuild it.
        verbose: Log progress at INFO level.

    Returns:
        The (possibly cached) clustering result.
    """
    n_docs = len(index.documents)
    if n_docs < 2:
        raise InvalidArgument(f"Need at least 2 documents to cluster (got {n_docs})")

    if index.clustering is not None and not force:
        return index.clustering

    if verbose:
        logger.info("Building hierarchical clusters...")
    condensed = squareform(np.asarray(index.distances, dtype=np.float64), checks=False)
    linkage_matrix = linkage(condensed, method=method)
    index.clustering = HierarchicalClustering(
        linkage_matrix=linkage_matrix, method=method, n_observations=n_docs
    )
    return index.clustering


def cut_tree(
    clustering: ClusteringResult,
    *,
    k: Optional[int] = None,
    h: Optional[float] = None,
) -> np.ndarray:
    """
    Cut a dendrogram into topics.

    Exactly one of `k` (number of topics) or `h` (merge height) must be given.
    Tied merge heights can yield fewer than `k` topics.

    Returns:
        Assignment vector of shape (n_docs,) with topic ids 1..n_topics.
    """
    if (k is None) == (h is None):
        raise InvalidArgument("Provide exactly one of `k` or `h`")
    if clustering.kind != "hierarchical":
        raise InvalidArgument(f"Cannot cut clustering of kind {clustering.kind!r}")

    n_obs = clustering.n_observations
    if k is not None:
        if k < 1 or k >= n_obs:
            raise InvalidArgument(
                f"k must be between 1 and the number of documents - 1 ({n_obs - 1}) (got {k})"
            )
        assignments = fcluster(clustering.linkage_matrix, t=k, criterion="maxclust")
    else:
        if h < 0:
            raise InvalidArgument(f"h must be non-negative (got {h})")
        assignments = fcluster(clustering.linkage_matrix, t=h, criterion="distance")
    return assignments.astype(np.int64)
