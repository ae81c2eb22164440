"""
Concept and spectrum probes.

A concept probe learns a direction in embedding space from pairs of documents:
each seed document is rewritten "through the lens" of the concept and the
difference between the rewritten and the original embedding isolates the
concept from the seed's content. A spectrum probe does the same for two
opposing lenses and learns the axis between them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Tuple
import logging
import numpy as np

from .data_structures import ProbeState
from .exceptions import InvalidArgument, LowSeparability, warn
from .index import DEFAULT_MAX_BATCH_CHARS, DocumentIndex, embed_texts
from .prompts import resolve_template
from .protocols import Embedder, Generator
from .scoring import check_index_identity, score
from .utils import CostTracker, RandomState, as_rng, parallel_map, strip_quotes
from .validation import cross_validate_accuracy, fit_logistic

logger = logging.getLogger(__name__)


# =====================================================================
# Shared machinery
# =====================================================================


class _DirectionProbe(ABC):
    """Base for probes trained on rewrite-minus-original embedding differences."""

    source_doc_ids: List[int]
    index_identity: str
    rewritten_documents: Optional[List[str]]
    direction_embeddings: Optional[np.ndarray]
    coefficients: Optional[np.ndarray]

    default_lambda: float
    """Regularization used when `train` is called without `lambda_`."""

    @property
    @abstractmethod
    def lenses(self) -> Tuple[str, ...]:
        """Lenses every seed is rewritten through, in rewrite order."""

    @property
    def state(self) -> ProbeState:
        if self.coefficients is not None:
            return ProbeState.TRAINED
        if self.rewritten_documents is not None or self.direction_embeddings is not None:
            return ProbeState.PARTIALLY_MATERIALIZED
        return ProbeState.UNTRAINED

    @abstractmethod
    def _validate(self, index: DocumentIndex) -> None:
        ...

    @abstractmethod
    def _training_set(
        self, index: DocumentIndex, negative_multiplier: int, rng: np.random.Generator
    ) -> Tuple[np.ndarray, np.ndarray]:
        ...

    @abstractmethod
    def _wording(self) -> str:
        ...

    def _rewrite(
        self,
        index: DocumentIndex,
        generator: Generator,
        template: str,
        cost_tracker: CostTracker,
        max_workers: Optional[int],
    ) -> List[str]:
        """Rewrite every seed through every lens, lens by lens."""
        jobs = [(doc_id, lens) for lens in self.lenses for doc_id in self.source_doc_ids]

        def _one(job: Tuple[int, str]) -> str:
            doc_id, lens = job
            response = generator.generate(
                template,
                {"statement": index.documents[doc_id], "lens": lens},
                cost_tracker=cost_tracker,
            )
            return strip_quotes(response)

        return parallel_map(_one, jobs, max_workers=max_workers)

    def train(
        self,
        index: DocumentIndex,
        *,
        generator: Optional[Generator] = None,
        embedder: Optional[Embedder] = None,
        overwrite: bool = False,
        lambda_: Optional[float] = None,
        negative_multiplier: int = 1,
        rewriter_template: str = "statement_rewriter",
        templates: Optional[Mapping[str, str]] = None,
        cv_folds: int = 4,
        accuracy_threshold: float = 0.9,
        random_state: RandomState = None,
        max_workers: Optional[int] = None,
        max_batch_chars: int = DEFAULT_MAX_BATCH_CHARS,
        verbose: bool = True,
    ):
        """
        Train (or retrain) the probe.

        Rewrites and embeddings are produced only when missing or when
        `overwrite` is set; the logistic model is always refit.

        Args:
            index: Index holding the seed documents and their embeddings.
            generator: Text generation service, needed to rewrite seeds.
            embedder: Embedding service, needed to embed rewrites.
            overwrite: Regenerate rewrites and embeddings even if present.
            lambda_: L2 regularization strength. Defaults to `default_lambda`
                (1e-3 for concepts, 1e-5 for spectra).
            negative_multiplier: Negatives drawn per seed (concepts only).
            rewriter_template: Name of the rewriting template.
            templates: Template lookup. Defaults to the built-in templates.
            cv_folds: Number of cross-validation folds.
            accuracy_threshold: Accuracy at or below which a warning is emitted.
            random_state: Seed or Generator for negatives and folds.
            max_workers: Maximum concurrent calls to the services.
            max_batch_chars: Approximate character budget per embedding call.
            verbose: Log progress at INFO level.

        Returns:
            The probe itself, now trained.
        """
        self._validate(index)
        check_index_identity(index, self)
        if lambda_ is None:
            lambda_ = self.default_lambda
        rng = as_rng(random_state)
        cost_tracker = CostTracker()
        n_expected = len(self.lenses) * len(self.source_doc_ids)

        if self.rewritten_documents is None or overwrite:
            if generator is None:
                raise InvalidArgument("A generator is required to rewrite the seed documents")
            template = resolve_template(rewriter_template, templates)
            if verbose:
                logger.info("Rewriting %d documents...", n_expected)
            self.rewritten_documents = self._rewrite(
                index, generator, template, cost_tracker, max_workers
            )
        if len(self.rewritten_documents) != n_expected:
            raise InvalidArgument(
                f"Number of documents mismatch! (Provided: {len(self.rewritten_documents)}, "
                f"Expected: {n_expected})"
            )

        if self.direction_embeddings is None or overwrite:
            if embedder is None:
                raise InvalidArgument("An embedder is required to embed the rewritten documents")
            if verbose:
                logger.info("Embedding %d documents...", n_expected)
            embeddings = embed_texts(
                embedder,
                self.rewritten_documents,
                max_batch_chars=max_batch_chars,
                max_workers=max_workers,
                cost_tracker=cost_tracker,
            )
            if embeddings.shape[1] != index.dim:
                raise InvalidArgument(
                    f"Embedding dimension mismatch (index: {index.dim}, "
                    f"rewrites: {embeddings.shape[1]})"
                )
            # remove the seed itself so only the lens direction is left
            originals = np.tile(index.embeddings[self.source_doc_ids], (len(self.lenses), 1))
            self.direction_embeddings = (embeddings - originals).astype(np.float32)
        if self.direction_embeddings.shape != (n_expected, index.dim):
            raise InvalidArgument(
                f"Number of embeddings mismatch! (Provided: {self.direction_embeddings.shape}, "
                f"Expected: ({n_expected}, {index.dim}))"
            )
        if verbose and cost_tracker.total > 0:
            logger.info("Done with external services. Total cost: $%.3f", cost_tracker.total)

        if verbose:
            logger.info("Training a classifier...")
        X, y = self._training_set(index, negative_multiplier, rng)
        accuracy = cross_validate_accuracy(
            X, y, k=min(cv_folds, X.shape[0]), lambda_=lambda_,
            random_state=rng, max_workers=max_workers,
        )
        if verbose:
            logger.info("Cross-validated accuracy: %.1f%%", accuracy * 100)
        if accuracy <= accuracy_threshold:
            warn(
                LowSeparability,
                f"Accuracy is too low! (Expected > {accuracy_threshold:.0%}, got {accuracy:.0%}); "
                f"revisit the regularization strength (smaller `lambda_`), the wording of "
                f"{self._wording()}, or increase the sample size (`num_samples`).",
                logger,
            )
        self.coefficients = fit_logistic(X, y, lambda_=lambda_)
        return self

    def score(self, index: DocumentIndex, *, check_index: bool = True) -> np.ndarray:
        """Scores between 0 and 1 for every document in `index`."""
        return score(index, self, check_index=check_index)

    def __call__(self, index: DocumentIndex, *, check_index: bool = True) -> np.ndarray:
        return self.score(index, check_index=check_index)


def _sample_seeds(index: DocumentIndex, num_samples: int, rng: np.random.Generator) -> List[int]:
    if num_samples < 1:
        raise InvalidArgument(f"num_samples must be positive (got {num_samples})")
    return [int(i) for i in rng.permutation(len(index))[:num_samples]]


# =====================================================================
# Concept
# =====================================================================


@dataclass(repr=False)
class TrainedConcept(_DirectionProbe):
    """Probe scoring how strongly documents express one concept."""

    index_identity: str
    """Identity of the index used for training."""

    source_doc_ids: List[int]
    """Seed documents that get rewritten."""

    concept: str
    """Lens the seeds are rewritten through."""

    rewritten_documents: Optional[List[str]] = None
    """One rewrite per seed."""

    direction_embeddings: Optional[np.ndarray] = None
    """Rewrite embedding minus seed embedding, shape (n_seeds, dim)."""

    coefficients: Optional[np.ndarray] = None
    """Logistic coefficients, shape (dim,)."""

    default_lambda = 1e-3

    @property
    def lenses(self) -> Tuple[str, ...]:
        return (self.concept,)

    def _wording(self) -> str:
        return "the `concept`"

    def _validate(self, index: DocumentIndex) -> None:
        if not self.concept:
            raise InvalidArgument(f"Concept must be non-empty! (Provided: {self.concept!r})")
        if not self.source_doc_ids:
            raise InvalidArgument("Source document ids must be non-empty!")
        index.check_doc_ids(self.source_doc_ids)

    def _training_set(
        self, index: DocumentIndex, negative_multiplier: int, rng: np.random.Generator
    ) -> Tuple[np.ndarray, np.ndarray]:
        if negative_multiplier < 1:
            raise InvalidArgument(f"negative_multiplier must be >= 1 (got {negative_multiplier})")
        candidates = np.setdiff1d(np.arange(len(index)), self.source_doc_ids)
        if candidates.size == 0:
            raise InvalidArgument(
                "No documents left for negative examples; use fewer seed documents "
                "(`num_samples`) than documents in the index"
            )
        n_negatives = min(negative_multiplier * len(self.source_doc_ids), candidates.size)
        negatives = rng.choice(candidates, size=n_negatives, replace=False)
        X = np.vstack([self.direction_embeddings, index.embeddings[negatives]])
        y = np.concatenate([np.ones(len(self.source_doc_ids)), -np.ones(n_negatives)]).astype(int)
        return X, y

    def __repr__(self) -> str:
        docs_str = "-" if self.rewritten_documents is None else len(self.rewritten_documents)
        emb_str = "-" if self.direction_embeddings is None else "OK"
        coef_str = "-" if self.coefficients is None else "OK"
        return (
            f'TrainedConcept(concept="{self.concept}", docs={docs_str}, '
            f"embeddings={emb_str}, coefficients={coef_str})"
        )


def train_concept(
    index: DocumentIndex,
    concept: str,
    *,
    generator: Generator,
    embedder: Embedder,
    num_samples: int = 100,
    lambda_: float = 1e-3,
    negative_multiplier: int = 1,
    random_state: RandomState = None,
    **train_kwargs,
) -> TrainedConcept:
    """
    Train a concept probe from randomly chosen seed documents.

    Args:
        index: The document index.
        concept: Lens to rewrite the seeds through, e.g. "action-oriented".
        generator: Text generation service.
        embedder: Embedding service; must match the index embeddings.
        num_samples: Number of seed documents (capped at the index size).
        lambda_: L2 regularization strength.
        negative_multiplier: Raw documents used as negatives per seed.
        random_state: Seed or Generator for sampling and folds.
        **train_kwargs: Passed to `TrainedConcept.train`.

    Returns:
        Trained concept probe.

    Example:
        >>> concept = train_concept(index, "sustainability", generator=gen, embedder=emb)
        >>> scores = concept(index)
    """
    rng = as_rng(random_state)
    probe = TrainedConcept(
        index_identity=index.identity,
        source_doc_ids=_sample_seeds(index, num_samples, rng),
        concept=concept,
    )
    return probe.train(
        index,
        generator=generator,
        embedder=embedder,
        lambda_=lambda_,
        negative_multiplier=negative_multiplier,
        random_state=rng,
        **train_kwargs,
    )


# =====================================================================
# Spectrum
# =====================================================================


@dataclass(repr=False)
class TrainedSpectrum(_DirectionProbe):
    """Probe placing documents between two opposing lenses."""

    index_identity: str
    """Identity of the index used for training."""

    source_doc_ids: List[int]
    """Seed documents that get rewritten through both lenses."""

    spectrum: Tuple[str, str]
    """The two lenses; scores near 0 lean to the first, near 1 to the second."""

    rewritten_documents: Optional[List[str]] = None
    """Rewrites for the first lens followed by rewrites for the second."""

    direction_embeddings: Optional[np.ndarray] = None
    """Rewrite minus seed embeddings, shape (2 * n_seeds, dim)."""

    coefficients: Optional[np.ndarray] = None
    """Logistic coefficients, shape (dim,)."""

    default_lambda = 1e-5

    @property
    def lenses(self) -> Tuple[str, ...]:
        return tuple(self.spectrum)

    def _wording(self) -> str:
        return "the `spectrum` lenses"

    def _validate(self, index: DocumentIndex) -> None:
        if len(self.spectrum) != 2:
            raise InvalidArgument(f"Spectrum needs exactly two sides (got {len(self.spectrum)})")
        for side, lens in enumerate(self.spectrum, start=1):
            if not lens:
                raise InvalidArgument(f"Spectrum side #{side} must be non-empty!")
        if self.spectrum[0] == self.spectrum[1]:
            raise InvalidArgument(f"Spectrum sides must be different! (Provided: {self.spectrum})")
        if not self.source_doc_ids:
            raise InvalidArgument("Source document ids must be non-empty!")
        index.check_doc_ids(self.source_doc_ids)

    def _training_set(
        self, index: DocumentIndex, negative_multiplier: int, rng: np.random.Generator
    ) -> Tuple[np.ndarray, np.ndarray]:
        n = len(self.source_doc_ids)
        y = np.concatenate([-np.ones(n), np.ones(n)]).astype(int)
        return self.direction_embeddings, y

    def __repr__(self) -> str:
        docs_str = "-" if self.rewritten_documents is None else len(self.rewritten_documents)
        emb_str = "-" if self.direction_embeddings is None else "OK"
        coef_str = "-" if self.coefficients is None else "OK"
        return (
            f'TrainedSpectrum(spectrum="{self.spectrum[0]}" vs. "{self.spectrum[1]}", '
            f"docs={docs_str}, embeddings={emb_str}, coefficients={coef_str})"
        )


def train_spectrum(
    index: DocumentIndex,
    spectrum: Tuple[str, str],
    *,
    generator: Generator,
    embedder: Embedder,
    num_samples: int = 100,
    lambda_: float = 1e-5,
    random_state: RandomState = None,
    **train_kwargs,
) -> TrainedSpectrum:
    """
    Train a spectrum probe between two lenses.

    Args:
        index: The document index.
        spectrum: The two opposing lenses, e.g. ("pessimistic", "optimistic").
        generator: Text generation service.
        embedder: Embedding service; must match the index embeddings.
        num_samples: Number of seed documents (capped at the index size).
        lambda_: L2 regularization strength.
        random_state: Seed or Generator for sampling and folds.
        **train_kwargs: Passed to `TrainedSpectrum.train`.

    Returns:
        Trained spectrum probe.
    """
    rng = as_rng(random_state)
    probe = TrainedSpectrum(
        index_identity=index.identity,
        source_doc_ids=_sample_seeds(index, num_samples, rng),
        spectrum=tuple(spectrum),
    )
    return probe.train(
        index,
        generator=generator,
        embedder=embedder,
        lambda_=lambda_,
        random_state=rng,
        **train_kwargs,
    )
