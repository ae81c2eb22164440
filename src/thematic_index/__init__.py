"""
Thematic Index package.

Embedding-based exploration of document collections: hierarchical topics with
generated labels, topic trees, and concept, spectrum and classifier probes
that score every document.
"""

from .index import DocumentIndex, build_index, embed_texts, prepare_projection
from .clustering import build_clustering, cut_tree
from .topics import (
    build_topic,
    build_topics,
    build_custom_topics,
    select_medoids,
    topic_info,
)
from .trees import TopicTreeNode, build_topic_tree, render_tree
from .concepts import TrainedConcept, TrainedSpectrum, train_concept, train_spectrum
from .classification import TrainedClassifier, build_classifier_topics, train_classifier
from .scoring import score, sigmoid, softmax
from .validation import create_folds, cross_validate_accuracy
from .keywords import build_keywords
from .components import (
    SentenceTransformerEmbedder,
    OpenAIGenerator,
    UMAPReducer,
    e5_base_embedder,
)
from .config import AnalysisConfig
from .prompts import DEFAULT_TEMPLATES
from .utils import CostTracker
from .exceptions import (
    ThematicIndexError,
    InvalidArgument,
    InvalidTopicIndex,
    UnknownLevel,
    MissingTemplate,
    NotTrainedError,
    IndexIdentityMismatch,
    LowSeparability,
)
from .data_structures import HierarchicalClustering, ProbeState, TopicMetadata

__version__ = "0.1.0"

__all__ = [
    "DocumentIndex",
    "build_index",
    "embed_texts",
    "prepare_projection",
    "build_clustering",
    "cut_tree",
    "build_topic",
    "build_topics",
    "build_custom_topics",
    "select_medoids",
    "topic_info",
    "TopicTreeNode",
    "build_topic_tree",
    "render_tree",
    "TrainedConcept",
    "TrainedSpectrum",
    "train_concept",
    "train_spectrum",
    "TrainedClassifier",
    "build_classifier_topics",
    "train_classifier",
    "score",
    "sigmoid",
    "softmax",
    "create_folds",
    "cross_validate_accuracy",
    "build_keywords",
    "SentenceTransformerEmbedder",
    "OpenAIGenerator",
    "UMAPReducer",
    "e5_base_embedder",
    "AnalysisConfig",
    "DEFAULT_TEMPLATES",
    "CostTracker",
    "ThematicIndexError",
    "InvalidArgument",
    "InvalidTopicIndex",
    "UnknownLevel",
    "MissingTemplate",
    "NotTrainedError",
    "IndexIdentityMismatch",
    "LowSeparability",
    "HierarchicalClustering",
    "ProbeState",
    "TopicMetadata",
]
