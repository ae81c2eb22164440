"""Data structures for thematic-index."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal, Union
import numpy as np


LevelKey = Union[int, str]


@dataclass
class TopicMetadata:
    """Metadata of one topic within one topic level."""

    level_key: LevelKey
    """Key of the level this topic belongs to (topic count or custom name)."""

    topic_index: int
    """Identifier of the topic within its level (its assignment value)."""

    label: str = ""
    """Human-readable label, empty until generated or set by the caller."""

    summary: str = ""
    """Short summary, empty until generated."""

    member_ids: List[int] = field(default_factory=list)
    """Document ids (positions in ``index.documents``) belonging to this topic."""

    centroid_id: int = -1
    """Member closest to the mean embedding of the topic."""

    sample_ids: List[int] = field(default_factory=list)
    """Diverse members selected for review, never containing the centroid."""

    keyword_ids: List[int] = field(default_factory=list)
    """Positions in ``index.keyword_vocabulary``, strongest first."""

    index_identity: str = ""
    """Identity of the index the topic was built from."""

    @property
    def count(self) -> int:
        return len(self.member_ids)

    def __repr__(self) -> str:
        label_str = f"'{self.label}'" if self.label else "-"
        summary_str = "available" if self.summary else "-"
        return (
            f"TopicMetadata(id={self.topic_index}/{self.level_key}, "
            f"n={self.count}, label={label_str}, summary={summary_str})"
        )


@dataclass(frozen=True)
class HierarchicalClustering:
    """Dendrogram produced by agglomerative clustering."""

    linkage_matrix: np.ndarray
    """SciPy linkage matrix of shape (n_observations - 1, 4)."""

    method: str
    """Linkage method used to build the dendrogram (e.g. 'complete')."""

    n_observations: int
    """Number of documents the dendrogram was built over."""

    kind: Literal["hierarchical"] = "hierarchical"

    def __repr__(self) -> str:
        return f"HierarchicalClustering(method='{self.method}', n={self.n_observations})"


# One variant per supported clustering algorithm; switch on `.kind`.
ClusteringResult = Union[HierarchicalClustering]


class ProbeState(Enum):
    """Lifecycle of a trained probe."""

    UNTRAINED = "untrained"
    PARTIALLY_MATERIALIZED = "partially_materialized"
    TRAINED = "trained"
