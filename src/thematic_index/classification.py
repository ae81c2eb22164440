"""Multi-class classifier probes trained on (possibly synthetic) labelled documents."""

from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Union
import logging
import numpy as np

from .data_structures import ProbeState
from .exceptions import InvalidArgument, LowSeparability, warn
from .index import DEFAULT_MAX_BATCH_CHARS, DocumentIndex, embed_texts
from .prompts import resolve_template
from .protocols import Embedder, Generator
from .scoring import check_index_identity, score
from .topics import build_custom_topics
from .utils import CostTracker, RandomState, as_rng, nunique, parallel_map, strip_quotes
from .validation import cross_validate_accuracy, fit_multinomial

logger = logging.getLogger(__name__)


@dataclass(repr=False)
class TrainedClassifier:
    """Multinomial logistic probe assigning one of several labels to each document."""

    index_identity: str
    """Identity of the index used for training."""

    labels: List[str]
    """Label names; class `i` is `labels[i]`."""

    label_descriptions: Optional[List[str]] = None
    """Optional guidance per label used when generating examples."""

    source_doc_ids: Optional[List[int]] = None
    """Index documents used as labelled examples, if any."""

    training_documents: Optional[List[str]] = None
    """Texts of the training examples (real or generated)."""

    training_labels: Optional[List[int]] = None
    """Class of each training example, 0..n_labels-1."""

    embeddings: Optional[np.ndarray] = None
    """Embeddings of the training examples, shape (n_examples, dim)."""

    coefficients: Optional[np.ndarray] = None
    """Coefficients, shape (dim, n_labels)."""

    @property
    def state(self) -> ProbeState:
        if self.coefficients is not None:
            return ProbeState.TRAINED
        if self.training_documents is not None or self.embeddings is not None:
            return ProbeState.PARTIALLY_MATERIALIZED
        return ProbeState.UNTRAINED

    def _validate(self) -> None:
        if len(self.labels) < 2 or nunique(self.labels) != len(self.labels):
            raise InvalidArgument(
                f"At least two different labels are required! (Provided: {self.labels})"
            )
        if self.label_descriptions is not None and len(self.label_descriptions) != len(self.labels):
            raise InvalidArgument(
                f"Number of labels and their descriptions mismatch! "
                f"(Provided: {len(self.labels)}, {len(self.label_descriptions)})"
            )
        if self.training_labels is not None:
            y = np.asarray(self.training_labels)
            if y.size and (y.min() < 0 or y.max() >= len(self.labels)):
                raise InvalidArgument(
                    f"Training labels must be within 0 and {len(self.labels) - 1}! "
                    f"(Provided: {y.min()}..{y.max()})"
                )

    def train(
        self,
        index: DocumentIndex,
        *,
        generator: Optional[Generator] = None,
        embedder: Optional[Embedder] = None,
        overwrite: bool = False,
        lambda_: float = 1e-3,
        num_samples: int = 5,
        writer_template: str = "text_writer_from_label",
        templates: Optional[Mapping[str, str]] = None,
        cv_folds: int = 4,
        accuracy_threshold: float = 0.9,
        random_state: RandomState = None,
        max_workers: Optional[int] = None,
        max_batch_chars: int = DEFAULT_MAX_BATCH_CHARS,
        verbose: bool = True,
    ) -> "TrainedClassifier":
        """
        Train (or retrain) the classifier.

        Without labelled examples, `num_samples` documents per label are
        generated. Documents and embeddings are only produced when missing or
        when `overwrite` is set; the model itself is always refit.

        Args:
            index: Index providing reference documents and the embedding space.
            generator: Text generation service, needed for synthetic examples.
            embedder: Embedding service, needed to embed synthetic examples.
            overwrite: Regenerate documents and embeddings even if present.
            lambda_: L2 regularization strength.
            num_samples: Synthetic examples per label.
            writer_template: Name of the example-writing template.
            templates: Template lookup. Defaults to the built-in templates.
            cv_folds: Number of cross-validation folds.
            accuracy_threshold: Accuracy at or below which a warning is emitted.
            random_state: Seed or Generator for example order, references and folds.
            max_workers: Maximum concurrent calls to the services.
            max_batch_chars: Approximate character budget per embedding call.
            verbose: Log progress at INFO level.

        Returns:
            The classifier itself, now trained.
        """
        self._validate()
        check_index_identity(index, self)
        rng = as_rng(random_state)
        cost_tracker = CostTracker()

        if self.training_labels is None:
            if num_samples < 1:
                raise InvalidArgument(f"num_samples must be positive (got {num_samples})")
            labels = np.repeat(np.arange(len(self.labels)), num_samples)
            self.training_labels = [int(i) for i in rng.permutation(labels)]

        if self.training_documents is None or overwrite:
            if generator is None:
                raise InvalidArgument("A generator is required to write training examples")
            template = resolve_template(writer_template, templates)
            labels_to_use = self.label_descriptions or self.labels
            # random reference documents keep the generated examples diverse
            references = rng.integers(0, len(index), size=len(self.training_labels))
            if verbose:
                logger.info("Generating %d documents...", len(self.training_labels))

            def _write(job) -> str:
                label, reference = job
                response = generator.generate(
                    template,
                    {"label": labels_to_use[label], "sample": index.documents[reference]},
                    cost_tracker=cost_tracker,
                )
                return strip_quotes(response)

            self.training_documents = parallel_map(
                _write, zip(self.training_labels, references.tolist()), max_workers=max_workers
            )
        if len(self.training_documents) != len(self.training_labels):
            raise InvalidArgument(
                f"Number of documents and their labels do not match! "
                f"(Provided: {len(self.training_documents)}, Expected: {len(self.training_labels)})"
            )

        if self.embeddings is None or overwrite:
            if embedder is None:
                raise InvalidArgument("An embedder is required to embed training examples")
            if verbose:
                logger.info("Embedding %d documents...", len(self.training_documents))
            self.embeddings = embed_texts(
                embedder,
                self.training_documents,
                max_batch_chars=max_batch_chars,
                max_workers=max_workers,
                cost_tracker=cost_tracker,
            )
        if self.embeddings.shape != (len(self.training_labels), index.dim):
            raise InvalidArgument(
                f"Number of embeddings mismatch! (Provided: {self.embeddings.shape}, "
                f"Expected: ({len(self.training_labels)}, {index.dim}))"
            )
        if verbose and cost_tracker.total > 0:
            logger.info("Done with external services. Total cost: $%.3f", cost_tracker.total)

        if verbose:
            logger.info("Training a classifier...")
        X = np.asarray(self.embeddings)
        y = np.asarray(self.training_labels)
        accuracy = cross_validate_accuracy(
            X, y, k=min(cv_folds, X.shape[0]), lambda_=lambda_, multinomial=True,
            random_state=rng, max_workers=max_workers,
        )
        if verbose:
            logger.info("Cross-validated accuracy: %.1f%%", accuracy * 100)
        if accuracy <= accuracy_threshold:
            warn(
                LowSeparability,
                f"Accuracy is too low! (Expected > {accuracy_threshold:.0%}, got {accuracy:.0%}); "
                f"revisit the regularization strength (smaller `lambda_`), increase the sample "
                f"size (`num_samples`) or provide more labelled documents.",
                logger,
            )
        self.coefficients = fit_multinomial(X, y, len(self.labels), lambda_=lambda_)
        return self

    def score(
        self, index: DocumentIndex, *, check_index: bool = True, return_labels: bool = False
    ) -> Union[np.ndarray, List[str]]:
        """Label probabilities (n_docs, n_labels) or the best label per document."""
        return score(index, self, check_index=check_index, return_labels=return_labels)

    def __call__(
        self, index: DocumentIndex, *, check_index: bool = True, return_labels: bool = False
    ) -> Union[np.ndarray, List[str]]:
        return self.score(index, check_index=check_index, return_labels=return_labels)

    def __repr__(self) -> str:
        docs_str = "-" if self.training_documents is None else len(self.training_documents)
        emb_str = "-" if self.embeddings is None else "OK"
        coef_str = "-" if self.coefficients is None else "OK"
        return (
            f"TrainedClassifier(labels={self.labels}, docs={docs_str}, "
            f"embeddings={emb_str}, coefficients={coef_str})"
        )


def train_classifier(
    index: DocumentIndex,
    labels: Sequence[str],
    *,
    generator: Optional[Generator] = None,
    embedder: Optional[Embedder] = None,
    document_ids: Optional[Sequence[int]] = None,
    document_labels: Optional[Sequence[int]] = None,
    label_descriptions: Optional[Sequence[str]] = None,
    num_samples: int = 5,
    lambda_: float = 1e-3,
    **train_kwargs,
) -> TrainedClassifier:
    """
    Train a classifier over the index embeddings.

    With `document_ids` and `document_labels`, those index documents (and their
    existing embeddings) are the training set. Otherwise `num_samples` examples
    per label are generated.

    Args:
        index: The document index.
        labels: Label names (at least two, distinct).
        generator: Text generation service (only for synthetic examples).
        embedder: Embedding service (only for synthetic examples).
        document_ids: Index documents with known labels.
        document_labels: Class of each of `document_ids`, 0..len(labels)-1.
        label_descriptions: Longer description per label to guide generation.
        num_samples: Synthetic examples per label.
        lambda_: L2 regularization strength.
        **train_kwargs: Passed to `TrainedClassifier.train`.

    Returns:
        Trained classifier.

    Example:
        >>> clf = train_classifier(index, ["Praise", "Complaint"], generator=gen, embedder=emb)
        >>> best = clf(index, return_labels=True)
    """
    labels = list(labels)
    document_ids = [] if document_ids is None else [int(i) for i in document_ids]
    document_labels = [] if document_labels is None else [int(i) for i in document_labels]
    if len(labels) < 2 or nunique(labels) != len(labels):
        raise InvalidArgument(f"At least two different labels are required! (Provided: {labels})")
    if len(document_ids) != len(document_labels):
        raise InvalidArgument(
            f"Number of documents and labels mismatch! "
            f"(Provided: {len(document_ids)}, {len(document_labels)})"
        )
    if document_ids:
        y = np.asarray(document_labels)
        if y.min() < 0 or y.max() >= len(labels):
            raise InvalidArgument(
                f"Document labels must be within 0 and {len(labels) - 1}! "
                f"(Provided: {y.min()}..{y.max()})"
            )
        if nunique(document_labels) != len(labels):
            raise InvalidArgument(
                f"Number of unique labels and document labels mismatch! "
                f"(Provided: {len(labels)}, {nunique(document_labels)})"
            )
        index.check_doc_ids(document_ids)
    if label_descriptions is not None and len(label_descriptions) != len(labels):
        raise InvalidArgument(
            f"Number of labels and their descriptions mismatch! "
            f"(Provided: {len(labels)}, {len(label_descriptions)})"
        )

    classifier = TrainedClassifier(
        index_identity=index.identity,
        labels=labels,
        label_descriptions=list(label_descriptions) if label_descriptions is not None else None,
        source_doc_ids=document_ids or None,
        training_documents=index.get_documents(document_ids) if document_ids else None,
        training_labels=document_labels or None,
        embeddings=index.embeddings[document_ids].copy() if document_ids else None,
    )
    return classifier.train(
        index,
        generator=generator,
        embedder=embedder,
        num_samples=num_samples,
        lambda_=lambda_,
        **train_kwargs,
    )


def build_classifier_topics(
    index: DocumentIndex,
    classifier: TrainedClassifier,
    level_name: Optional[str] = None,
    **topic_kwargs,
) -> DocumentIndex:
    """
    Store the classifier's predictions as a custom topic level labelled with its labels.

    Args:
        index: The document index to classify.
        classifier: Trained classifier.
        level_name: Name of the level; defaults to "classifier".
        **topic_kwargs: Passed to `build_custom_topics`.

    Returns:
        The same index with the new level.
    """
    probabilities = classifier.score(index)
    assignments = probabilities.argmax(axis=1)
    return build_custom_topics(
        index,
        assignments,
        level_name or "classifier",
        labels=dict(enumerate(classifier.labels)),
        **topic_kwargs,
    )
