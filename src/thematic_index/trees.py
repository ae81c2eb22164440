"""Topic trees linking topic levels of different granularity."""

from dataclasses import dataclass, field
from typing import Iterator, List, Sequence
import logging

from .data_structures import LevelKey, TopicMetadata
from .index import DocumentIndex

logger = logging.getLogger(__name__)


@dataclass
class TopicTreeNode:
    """A node of the topic tree; the root stands for all documents."""

    topic: TopicMetadata
    """Topic wrapped by this node."""

    total_document_count: int
    """Number of documents in the index, used for shares."""

    children: List["TopicTreeNode"] = field(default_factory=list)
    """Child nodes at the next level."""

    @property
    def share(self) -> float:
        """Share of all documents covered by this node, in percent."""
        if self.total_document_count == 0:
            return 0.0
        return 100.0 * self.topic.count / self.total_document_count

    def describe(self) -> str:
        return (
            f"{self.topic.label} (N: {self.topic.count}, Share: {round(self.share, 2)}%, "
            f"Level: {self.topic.level_key}, Topic ID: {self.topic.topic_index})"
        )

    def iter_nodes(self) -> Iterator["TopicTreeNode"]:
        """Depth-first traversal including this node."""
        yield self
        for child in self.children:
            yield from child.iter_nodes()

    @property
    def depth(self) -> int:
        """Number of levels below this node."""
        if not self.children:
            return 0
        return 1 + max(child.depth for child in self.children)

    def __str__(self) -> str:
        return self.describe()


def render_tree(node: TopicTreeNode) -> str:
    """Render a tree with box-drawing guides, one node per line."""
    lines = [node.describe()]

    def _walk(current: TopicTreeNode, prefix: str) -> None:
        for i, child in enumerate(current.children):
            last = i == len(current.children) - 1
            lines.append(f"{prefix}{'└─ ' if last else '├─ '}{child.describe()}")
            _walk(child, prefix + ("   " if last else "│  "))

    _walk(node, "")
    return "\n".join(lines)


def _attach_children(
    parent: TopicTreeNode, topics: Sequence[TopicMetadata], sort_children: bool
) -> List[TopicMetadata]:
    """Attach every topic whose centroid lies in `parent`; return the attached topics."""
    members = set(parent.topic.member_ids)
    attached = [t for t in topics if t.centroid_id in members]
    parent.children.extend(
        TopicTreeNode(topic=t, total_document_count=parent.total_document_count)
        for t in attached
    )
    if sort_children:
        parent.children.sort(key=lambda node: node.topic.count, reverse=True)
    return attached


def build_topic_tree(
    index: DocumentIndex,
    levels: Sequence[LevelKey],
    *,
    sort_children: bool = True,
) -> TopicTreeNode:
    """
    Build a topic tree over the given levels, coarse to fine.

    A topic becomes the child of the previous-level node whose members contain
    the topic's central document. Topics without such a parent (possible with
    custom levels that are not nested) are dropped with a warning.

    Args:
        index: The document index; every level must already be built.
        levels: Level keys in the order they should nest, e.g. ``[4, 10, 20]``.
        sort_children: Sort children by number of documents, largest first.

    Returns:
        Root node covering all documents.
    """
    level_topics = [index.get_level(level) for level in levels]

    n_docs = len(index)
    root_topic = TopicMetadata(
        level_key="root",
        topic_index=0,
        label="All Documents",
        member_ids=list(range(n_docs)),
        index_identity=index.identity,
    )
    root = TopicTreeNode(topic=root_topic, total_document_count=n_docs)

    current = [root]
    for level, topics in zip(levels, level_topics):
        attached_ids = set()
        for node in current:
            attached_ids.update(
                id(t) for t in _attach_children(node, topics, sort_children)
            )
        orphans = [t for t in topics if id(t) not in attached_ids]
        if orphans:
            logger.warning(
                "Dropping %d topic(s) of level %r whose central document is not in any "
                "parent topic: %s",
                len(orphans), level, [t.topic_index for t in orphans],
            )
        current = [child for node in current for child in node.children]
    return root
