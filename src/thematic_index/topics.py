"""Topic construction: per-topic metadata and whole topic levels."""

from functools import partial
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
import logging
import math
import numpy as np
import pandas as pd
from sklearn.metrics.pairwise import cosine_distances

from .clustering import build_clustering, cut_tree
from .data_structures import LevelKey, TopicMetadata
from .exceptions import InvalidArgument, InvalidTopicIndex
from .index import DocumentIndex
from .prompts import NOT_PROVIDED, clean_label, clean_summary, resolve_template
from .protocols import Generator
from .utils import CostTracker, nunique, parallel_map

logger = logging.getLogger(__name__)


# =====================================================================
# Diverse sampling
# =====================================================================


def select_medoids(distances: np.ndarray, k: int, max_iter: int = 100) -> List[int]:
    """
    Deterministic k-medoids over a square distance matrix.

    Medoids are initialized greedily (each new medoid maximizes the reduction of
    total distance to the nearest medoid) and then refined by alternating
    assignment and per-cluster medoid updates until nothing changes.

    Args:
        distances: Square distance matrix (n, n).
        k: Number of medoids.
        max_iter: Maximum refinement rounds.

    Returns:
        Row positions of the medoids, one per cluster.
    """
    n = distances.shape[0]
    if k <= 0 or n == 0:
        return []
    if k >= n:
        return list(range(n))

    medoids = [int(np.argmin(distances.sum(axis=1)))]
    nearest = distances[:, medoids[0]].copy()
    while len(medoids) < k:
        gains = np.maximum(nearest[:, None] - distances, 0.0).sum(axis=0)
        gains[medoids] = -1.0
        candidate = int(np.argmax(gains))
        medoids.append(candidate)
        nearest = np.minimum(nearest, distances[:, candidate])

    for _ in range(max_iter):
        labels = np.argmin(distances[:, medoids], axis=1)
        updated = []
        for cluster, medoid in enumerate(medoids):
            members = np.flatnonzero(labels == cluster)
            if members.size == 0:
                updated.append(medoid)
                continue
            within = distances[np.ix_(members, members)].sum(axis=1)
            updated.append(int(members[np.argmin(within)]))
        if updated == medoids:
            break
        medoids = updated
    return medoids


# =====================================================================
# Single topic
# =====================================================================


def build_topic(
    index: DocumentIndex,
    assignments: Sequence[int],
    topic_index: int,
    level_key: Optional[LevelKey] = None,
    *,
    num_samples: int = 8,
    num_keywords: int = 10,
    add_label: bool = False,
    add_summary: bool = False,
    generator: Optional[Generator] = None,
    templates: Optional[Mapping[str, str]] = None,
    label_template: Optional[str] = "topic_labeler",
    summary_template: Optional[str] = "topic_summarizer",
    cost_tracker: Optional[CostTracker] = None,
) -> TopicMetadata:
    """
    Build the metadata of one topic.

    Args:
        index: The document index.
        assignments: Topic id of every document.
        topic_index: Topic to build; must appear in `assignments`.
        level_key: Level the topic belongs to. Defaults to the number of topics.
        num_samples: Number of diverse samples (medoids) to pick.
        num_keywords: Number of top keywords to keep.
        add_label: Ask the generator for a topic label.
        add_summary: Ask the generator for a topic summary.
        generator: Text generation service, required for labels and summaries.
        templates: Template lookup. Defaults to the built-in templates.
        label_template: Name of the label template.
        summary_template: Name of the summary template.
        cost_tracker: Shared accumulator for generation costs.

    Returns:
        TopicMetadata for `topic_index`.
    """
    assignments = np.asarray(assignments)
    if assignments.shape != (len(index),):
        raise InvalidArgument(
            f"assignments must have one entry per document ({len(index)}) "
            f"(got {assignments.shape})"
        )
    mask = assignments == topic_index
    if not mask.any():
        raise InvalidTopicIndex(f"Topic index {topic_index} not found in assignments!")
    if num_samples < 0:
        raise InvalidArgument(f"Number of samples must be non-negative (got {num_samples})")
    if num_keywords < 0:
        raise InvalidArgument(f"Number of keywords must be non-negative (got {num_keywords})")
    if add_label:
        label_prompt = resolve_template(label_template, templates)
    if add_summary:
        summary_prompt = resolve_template(summary_template, templates)
    if (add_label or add_summary) and generator is None:
        raise InvalidArgument("A generator is required to add topic labels or summaries")

    if level_key is None:
        level_key = nunique(assignments)
    member_ids = np.flatnonzero(mask)

    # Keywords ranked by their total weight within the topic
    keyword_ids: List[int] = []
    if num_keywords > 0 and index.keyword_weights.shape[1] > 0:
        weights = np.asarray(index.keyword_weights[member_ids].sum(axis=0)).ravel()
        order = np.argsort(-weights, kind="stable")
        keyword_ids = [int(i) for i in order[weights[order] > 0][:num_keywords]]
    keywords = ", ".join(index.get_keywords(keyword_ids)) if keyword_ids else NOT_PROVIDED

    # Central document: closest member to the mean embedding
    member_embeddings = index.embeddings[member_ids]
    center = member_embeddings.mean(axis=0, keepdims=True)
    center_distances = cosine_distances(member_embeddings, center).ravel()
    centroid_id = int(member_ids[np.argmin(center_distances)])
    central_text = index.documents[centroid_id]

    # Spread-out sample of the topic, without the central document
    sample_ids: List[int] = []
    if num_samples > 0:
        submatrix = index.distances[np.ix_(member_ids, member_ids)]
        medoids = select_medoids(submatrix, min(num_samples, member_ids.size))
        sample_ids = [int(member_ids[m]) for m in medoids if member_ids[m] != centroid_id]
    if sample_ids:
        samples = "- " + "\n- ".join(index.get_documents(sample_ids))
    else:
        samples = NOT_PROVIDED

    variables = {"central_text": central_text, "samples": samples, "keywords": keywords}
    label = ""
    if add_label:
        response = generator.generate(label_prompt, variables, cost_tracker=cost_tracker)
        label = clean_label(response)
    summary = ""
    if add_summary:
        response = generator.generate(summary_prompt, variables, cost_tracker=cost_tracker)
        summary = clean_summary(response)

    return TopicMetadata(
        level_key=level_key,
        topic_index=int(topic_index),
        label=label,
        summary=summary,
        member_ids=[int(i) for i in member_ids],
        centroid_id=centroid_id,
        sample_ids=sample_ids,
        keyword_ids=keyword_ids,
        index_identity=index.identity,
    )


# =====================================================================
# Topic levels
# =====================================================================


def _build_level(
    index: DocumentIndex,
    assignments: np.ndarray,
    level_key: LevelKey,
    *,
    labels: Optional[Dict[int, str]] = None,
    max_workers: Optional[int] = None,
    verbose: bool = True,
    **topic_kwargs: Any,
) -> List[TopicMetadata]:
    """Build every topic of one level in parallel and store the level."""
    cost_tracker = topic_kwargs.pop("cost_tracker", None) or CostTracker()
    topic_ids = [int(t) for t in np.unique(assignments)]
    builder = partial(
        build_topic,
        index,
        assignments,
        level_key=level_key,
        cost_tracker=cost_tracker,
        **topic_kwargs,
    )
    topics = parallel_map(builder, topic_ids, max_workers=max_workers)
    if labels:
        for topic in topics:
            topic.label = labels[topic.topic_index]

    index.topic_levels[level_key] = topics
    if verbose:
        logger.info(
            "Done building %d topics for level %r. Cost: $%.3f",
            len(topics), level_key, cost_tracker.total,
        )
    return topics


def default_topic_count(n_docs: int) -> int:
    """Small default hierarchy: ``2 * ceil(ln(n_docs))``, at most ``n_docs - 1``."""
    return max(1, min(2 * math.ceil(math.log(n_docs)), n_docs - 1))


def build_topics(
    index: DocumentIndex,
    *,
    k: Optional[int] = None,
    h: Optional[float] = None,
    add_label: bool = False,
    add_summary: bool = False,
    generator: Optional[Generator] = None,
    templates: Optional[Mapping[str, str]] = None,
    num_samples: int = 8,
    num_keywords: int = 10,
    max_workers: Optional[int] = None,
    method: str = "complete",
    verbose: bool = True,
    **topic_kwargs: Any,
) -> DocumentIndex:
    """
    Cluster the index and build topic levels.

    The dendrogram is built once and cached. Each cut is stored under its actual
    number of topics, overwriting any level with the same key. Callers that only
    want to fill missing levels must check `index.topic_levels` themselves.
    If neither `k` nor `h` is given and no level exists yet, a default
    ``k = 2 * ceil(ln(n_docs))`` is used.

    Args:
        index: The document index.
        k: Number of topics to cut at.
        h: Dendrogram height to cut at.
        add_label: Generate topic labels.
        add_summary: Generate topic summaries.
        generator: Text generation service.
        templates: Template lookup.
        num_samples: Diverse samples per topic.
        num_keywords: Keywords per topic.
        max_workers: Maximum topics built concurrently.
        method: Linkage method for the dendrogram.
        verbose: Log progress at INFO level.
        **topic_kwargs: Passed to `build_topic` (e.g. `label_template`).

    Returns:
        The same index with updated `topic_levels`.
    """
    n_docs = len(index)
    if n_docs < 2:
        raise InvalidArgument(f"Need at least 2 documents to build topics (got {n_docs})")
    if k is not None and not 1 <= k < n_docs:
        raise InvalidArgument(
            f"k must be between 1 and the number of documents - 1 ({n_docs - 1}) (got {k})"
        )
    if h is not None and h < 0:
        raise InvalidArgument(f"h must be non-negative (got {h})")

    cuts = []
    if k is not None:
        cuts.append(("k", k))
    if h is not None:
        cuts.append(("h", h))
    if not cuts and not index.topic_levels:
        cuts.append(("k", default_topic_count(n_docs)))
    if not cuts:
        return index

    clustering = build_clustering(index, method=method, verbose=verbose)
    level_kwargs = dict(
        add_label=add_label,
        add_summary=add_summary,
        generator=generator,
        templates=templates,
        num_samples=num_samples,
        num_keywords=num_keywords,
        max_workers=max_workers,
        verbose=verbose,
        **topic_kwargs,
    )
    built = set()
    for name, value in cuts:
        if verbose:
            logger.info("Cutting clusters at %s=%s...", name, value)
        assignments = cut_tree(clustering, **{name: value})
        count_topics = nunique(assignments)
        if count_topics in built:
            continue
        _build_level(index, assignments, count_topics, **level_kwargs)
        built.add(count_topics)
    return index


def build_custom_topics(
    index: DocumentIndex,
    assignments: Sequence[int],
    level_name: str,
    *,
    labels: Optional[Union[Sequence[str], Mapping[int, str]]] = None,
    add_label: bool = False,
    add_summary: bool = False,
    generator: Optional[Generator] = None,
    templates: Optional[Mapping[str, str]] = None,
    num_samples: int = 8,
    num_keywords: int = 10,
    max_workers: Optional[int] = None,
    verbose: bool = True,
    **topic_kwargs: Any,
) -> DocumentIndex:
    """
    Build a topic level from an externally supplied partition.

    The dendrogram is not used. Typical sources are a trained classifier's
    predictions or any manual grouping.

    Args:
        index: The document index.
        assignments: Class of every document (arbitrary integers).
        level_name: Name of the level to create or overwrite.
        labels: Topic labels, either a sequence matched to the sorted distinct
            classes or a mapping from class to label. Supplied labels take
            precedence over generated ones.
        (remaining arguments as in `build_topics`)

    Returns:
        The same index with `topic_levels[level_name]` set.
    """
    if not isinstance(level_name, str) or not level_name:
        raise InvalidArgument(f"level_name must be a non-empty string (got {level_name!r})")
    assignments = np.asarray(assignments)
    if assignments.ndim != 1 or assignments.shape[0] != len(index):
        raise InvalidArgument(
            f"Number of assignments must match the number of documents "
            f"(got {assignments.shape[0] if assignments.ndim else 0}, expected {len(index)})"
        )
    if not np.issubdtype(assignments.dtype, np.integer):
        raise InvalidArgument(f"assignments must be integers (got dtype {assignments.dtype})")

    classes = [int(c) for c in np.unique(assignments)]
    label_map: Optional[Dict[int, str]] = None
    if labels is not None:
        if isinstance(labels, Mapping):
            missing = [c for c in classes if c not in labels]
            if missing:
                raise InvalidArgument(f"No label provided for classes {missing}")
            label_map = {c: labels[c] for c in classes}
        else:
            labels = list(labels)
            if len(labels) < len(classes):
                raise InvalidArgument(
                    f"Need at least as many labels as classes "
                    f"(got {len(labels)} labels for {len(classes)} classes)"
                )
            label_map = dict(zip(classes, labels))

    if verbose:
        logger.info("Building %d custom topics for level %r...", len(classes), level_name)
    _build_level(
        index,
        assignments,
        level_name,
        labels=label_map,
        add_label=add_label,
        add_summary=add_summary,
        generator=generator,
        templates=templates,
        num_samples=num_samples,
        num_keywords=num_keywords,
        max_workers=max_workers,
        verbose=verbose,
        **topic_kwargs,
    )
    return index


def topic_info(index: DocumentIndex, level_key: LevelKey) -> pd.DataFrame:
    """
    Summary table of one topic level.

    Returns:
        DataFrame with columns topic_index, label, count, share, central_text, keywords.
    """
    topics = index.get_level(level_key)
    n_docs = len(index)
    rows = [
        {
            "topic_index": t.topic_index,
            "label": t.label,
            "count": t.count,
            "share": t.count / n_docs,
            "central_text": index.documents[t.centroid_id],
            "keywords": ", ".join(index.get_keywords(t.keyword_ids)),
        }
        for t in topics
    ]
    df = pd.DataFrame(
        rows,
        columns=["topic_index", "label", "count", "share", "central_text", "keywords"],
    )
    return df.sort_values("count", ascending=False, kind="stable").reset_index(drop=True)
