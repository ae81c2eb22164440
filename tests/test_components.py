"""Tests for service adapters, prompts and shared helpers."""

from types import SimpleNamespace

import pytest

from thematic_index.components import OpenAIGenerator
from thematic_index.exceptions import MissingTemplate
from thematic_index.prompts import (
    DEFAULT_TEMPLATES,
    TOPIC_LABELER,
    clean_label,
    clean_summary,
    resolve_template,
)
from thematic_index.utils import CostTracker, parallel_map, strip_quotes


class FakeCompletions:
    def __init__(self, content, usage):
        self.content = content
        self.usage = usage
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=self.usage)


def make_client(content="A reply", usage=None):
    completions = FakeCompletions(content, usage)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


# ============================================================================
# OpenAIGenerator
# ============================================================================


def test_openai_generator_renders_template():
    client, completions = make_client()
    generator = OpenAIGenerator(model="gpt-4o", temperature=0.2, client=client)
    reply = generator.generate("Rewrite {statement} as {lens}",
                               {"statement": "hello", "lens": "poetry"})
    assert reply == "A reply"
    request = completions.requests[0]
    assert request["model"] == "gpt-4o"
    assert request["temperature"] == 0.2
    assert request["messages"] == [{"role": "user", "content": "Rewrite hello as poetry"}]


def test_openai_generator_tracks_cost():
    usage = SimpleNamespace(prompt_tokens=1000, completion_tokens=2000)
    client, _ = make_client(usage=usage)
    generator = OpenAIGenerator(model="gpt-4o-mini", client=client)
    tracker = CostTracker()
    generator.generate("Hi", {}, cost_tracker=tracker)
    assert tracker.total == pytest.approx(0.00015 + 2 * 0.0006)


def test_openai_generator_unknown_model_uses_default_rates():
    client, _ = make_client()
    generator = OpenAIGenerator(model="some-new-model", client=client)
    assert generator.call_cost(1000, 0) == pytest.approx(0.00015)


def test_openai_generator_empty_content():
    client, _ = make_client(content=None)
    assert OpenAIGenerator(client=client).generate("Hi", {}) == ""


# ============================================================================
# Prompts
# ============================================================================


def test_default_templates_use_expected_variables():
    variables = {
        "topic_labeler": {"central_text", "samples", "keywords"},
        "topic_summarizer": {"central_text", "samples", "keywords"},
        "statement_rewriter": {"statement", "lens"},
        "text_writer_from_label": {"label", "sample"},
    }
    for name, names in variables.items():
        rendered = DEFAULT_TEMPLATES[name].format(**{n: f"<{n}>" for n in names})
        for n in names:
            assert f"<{n}>" in rendered


def test_resolve_template():
    assert resolve_template("topic_labeler") is TOPIC_LABELER
    assert resolve_template("mine", {"mine": "text"}) == "text"
    with pytest.raises(MissingTemplate):
        resolve_template(None)
    with pytest.raises(MissingTemplate, match="Available templates"):
        resolve_template("topic_labeler", {})


@pytest.mark.parametrize(
    "response,expected",
    [
        ("Pet Care", "Pet Care"),
        ('"Pet Care"', "Pet Care"),
        ("prompt echo\n###\nThe topic name is: Pet Care\n", "Pet Care"),
        ('The topic name is: "Pet Care"', "Pet Care"),
    ],
)
def test_clean_label(response, expected):
    assert clean_label(response) == expected


def test_clean_summary():
    assert clean_summary("prompt echo\n###\n  A summary.  ") == "A summary."
    assert clean_summary("A summary.") == "A summary."


# ============================================================================
# Helpers
# ============================================================================


def test_cost_tracker_accumulates_across_threads():
    tracker = CostTracker()
    parallel_map(lambda _: tracker.add(0.5), range(100), max_workers=8)
    assert tracker.total == pytest.approx(50.0)
    with pytest.raises(ValueError):
        tracker.add(-1.0)


def test_parallel_map_preserves_order_and_propagates_errors():
    assert parallel_map(lambda x: x * 2, range(10), max_workers=4) == list(range(0, 20, 2))
    assert parallel_map(lambda x: x, [], max_workers=4) == []

    def fail_on_three(x):
        if x == 3:
            raise KeyError(x)
        return x

    with pytest.raises(KeyError):
        parallel_map(fail_on_three, range(6), max_workers=3)


def test_strip_quotes():
    assert strip_quotes('  "Quoted" text "here" ') == "Quoted text here"
