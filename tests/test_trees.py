"""Tests for topic trees."""

import pytest

from thematic_index.data_structures import TopicMetadata
from thematic_index.exceptions import UnknownLevel
from thematic_index.topics import build_topics
from thematic_index.trees import build_topic_tree, render_tree


def make_topic(level_key, topic_index, member_ids, centroid_id, label=""):
    return TopicMetadata(
        level_key=level_key,
        topic_index=topic_index,
        label=label or f"Topic {level_key}/{topic_index}",
        member_ids=list(member_ids),
        centroid_id=centroid_id,
    )


@pytest.fixture
def nested_index(make_index):
    """Ten documents split 5/5 at level 2 and 2/3/2/3 at level 4."""
    index = make_index([[float(i), 1.0] for i in range(10)])
    index.topic_levels[2] = [
        make_topic(2, 1, range(5), 2, "Left"),
        make_topic(2, 2, range(5, 10), 7, "Right"),
    ]
    index.topic_levels[4] = [
        make_topic(4, 1, [0, 1], 0),
        make_topic(4, 2, [2, 3, 4], 3),
        make_topic(4, 3, [5, 6], 5),
        make_topic(4, 4, [7, 8, 9], 8),
    ]
    return index


def test_root_covers_all_documents(nested_index):
    root = build_topic_tree(nested_index, [2])
    assert root.topic.level_key == "root"
    assert root.topic.label == "All Documents"
    assert root.topic.count == 10
    assert root.share == pytest.approx(100.0)
    assert [child.topic.count for child in root.children] == [5, 5]
    assert root.depth == 1


def test_children_nest_by_central_document(nested_index):
    root = build_topic_tree(nested_index, [2, 4])
    left, right = root.children
    assert left.topic.label == "Left"
    assert sorted(c.topic.topic_index for c in left.children) == [1, 2]
    assert sorted(c.topic.topic_index for c in right.children) == [3, 4]
    assert root.depth == 2
    assert len(list(root.iter_nodes())) == 7


def test_children_sorted_by_size(nested_index):
    root = build_topic_tree(nested_index, [2, 4])
    assert [c.topic.count for c in root.children[0].children] == [3, 2]

    unsorted = build_topic_tree(nested_index, [2, 4], sort_children=False)
    assert [c.topic.count for c in unsorted.children[0].children] == [2, 3]


def test_orphans_are_dropped_with_warning(nested_index, caplog):
    nested_index.topic_levels["partial"] = [make_topic("partial", 1, range(5), 2)]
    with caplog.at_level("WARNING"):
        root = build_topic_tree(nested_index, ["partial", 4])
    (partial,) = root.children
    assert sorted(c.topic.topic_index for c in partial.children) == [1, 2]
    assert len(list(root.iter_nodes())) == 4
    assert "Dropping 2 topic(s)" in caplog.text


def test_describe_and_render(nested_index):
    root = build_topic_tree(nested_index, [2, 4])
    assert root.describe() == "All Documents (N: 10, Share: 100.0%, Level: root, Topic ID: 0)"
    assert str(root.children[0]) == "Left (N: 5, Share: 50.0%, Level: 2, Topic ID: 1)"

    lines = render_tree(root).splitlines()
    assert len(lines) == 7
    assert lines[0].startswith("All Documents")
    assert lines[1].startswith("├─ Left")
    assert lines[2].startswith("│  ├─ ")
    assert lines[4].startswith("└─ Right")
    assert lines[6].startswith("   └─ ")


def test_unknown_level(nested_index):
    with pytest.raises(UnknownLevel):
        build_topic_tree(nested_index, [2, 3])


def test_tree_over_built_levels(index):
    build_topics(index, k=2, h=0.0, verbose=False)
    root = build_topic_tree(index, [2, len(index)])
    assert sum(c.topic.count for c in root.children) == len(index)
    assert all(len(c.children) == 5 for c in root.children)
