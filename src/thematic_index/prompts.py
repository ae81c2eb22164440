"""
Prompt templates used for topic labels, summaries, rewrites and synthetic examples.

Templates are plain ``str.format`` strings. Callers may pass their own
``{name: template}`` mapping to any function that generates text; the
defaults below are used when none is given.
"""

from typing import Mapping, Optional

from .exceptions import MissingTemplate


NOT_PROVIDED = "Not provided."
"""Placeholder text for empty keyword or sample lists in prompts."""

LABEL_DELIMITER = "###\n"
LABEL_PREFIX = "topic name is:"


TOPIC_LABELER = """You are a world-class data analyst. You name topics that group similar documents.

Below you will find the central document of a topic, a few diverse samples and the most frequent keywords.
Respond with a short topic name (2-5 words) that best describes what the documents have in common.

Central document:
{central_text}

Diverse samples:
{samples}

Keywords:
{keywords}

Respond only with the topic name.
###
The topic name is:"""


TOPIC_SUMMARIZER = """You are a world-class data analyst. You summarize topics that group similar documents.

Below you will find the central document of a topic, a few diverse samples and the most frequent keywords.
Write a concise summary (2-3 sentences) of what the documents in this topic discuss.

Central document:
{central_text}

Diverse samples:
{samples}

Keywords:
{keywords}

Respond only with the summary.
###
"""


STATEMENT_REWRITER = """Rewrite the statement below through the lens of: {lens}.

Keep the length and the overall subject of the statement, but make the perspective of the lens obvious.

Statement: {statement}

Respond only with the rewritten statement."""


TEXT_WRITER_FROM_LABEL = """Write a short document that clearly belongs to the category: {label}.

Match the style and the length of this reference document, but not its subject:
{sample}

Respond only with the new document."""


DEFAULT_TEMPLATES = {
    "topic_labeler": TOPIC_LABELER,
    "topic_summarizer": TOPIC_SUMMARIZER,
    "statement_rewriter": STATEMENT_REWRITER,
    "text_writer_from_label": TEXT_WRITER_FROM_LABEL,
}


def resolve_template(
    name: Optional[str], templates: Optional[Mapping[str, str]] = None
) -> str:
    """
    Look up a template by name.

    Args:
        name: Template name; None means no template is configured.
        templates: Lookup to search. Defaults to DEFAULT_TEMPLATES.

    Returns:
        The template text.
    """
    lookup = DEFAULT_TEMPLATES if templates is None else templates
    if name is None or name not in lookup:
        raise MissingTemplate(
            f"No template configured for {name!r}. "
            f"Available templates: {sorted(lookup)}"
        )
    return lookup[name]


def clean_label(text: str) -> str:
    """Keep only the label from a response that may echo the prompt."""
    clean = text.split(LABEL_DELIMITER)[-1]
    clean = clean.split(LABEL_PREFIX)[-1]
    return clean.strip().strip('"').strip()


def clean_summary(text: str) -> str:
    """Keep only the summary from a response that may echo the prompt."""
    return text.split(LABEL_DELIMITER)[-1].strip()
