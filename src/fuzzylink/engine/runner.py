"""End-to-end linkage runner.

Chains the stages into a single run:

    blocking -> features -> active_learning -> recall_search -> cutoff -> assembly

Every stage shares one ``LabelStore`` and one random generator; blocks
are handled together through the deduplicated pair table.
"""

from __future__ import annotations

import traceback

import numpy as np
import pandas as pd

from fuzzylink.audit.logger import AuditLogger
from fuzzylink.blocking.filter import build_blocks
from fuzzylink.decision.cutoff import STAGE_NAME as CUTOFF_STAGE
from fuzzylink.decision.cutoff import select_cutoff
from fuzzylink.engine.assembly import assemble_output
from fuzzylink.engine.config import LinkageConfig, LinkageResult
from fuzzylink.errors import FuzzyLinkError, ModelFitError
from fuzzylink.features.builder import build_pair_table
from fuzzylink.labels.store import LabelStore
from fuzzylink.learning.active import ActiveLearner
from fuzzylink.learning.models import LearningOutcome, RecallOutcome
from fuzzylink.learning.recall import effective_probabilities, recall_search
from fuzzylink.learning.session import LabelingSession
from fuzzylink.model.factory import create_classifier
from fuzzylink.providers.base import EmbeddingProvider, MatchOracle


def _run_stages(
    df_a: pd.DataFrame,
    df_b: pd.DataFrame,
    config: LinkageConfig,
    embedder: EmbeddingProvider,
    oracle: MatchOracle,
    logger: AuditLogger | None,
) -> LinkageResult:
    rng = np.random.default_rng(config.seed)

    blocking = build_blocks(
        df_a, df_b, config.by, config.blocking_variables, logger=logger
    )
    pairs = build_pair_table(
        blocking.blocks, embedder, metrics=config.metrics, logger=logger
    )

    store = LabelStore(pairs.feature_names)
    session = LabelingSession(pairs, store, oracle, config.learning_settings(), logger)
    session.seed_exact()

    learning: LearningOutcome | None = None
    recall: RecallOutcome | None = None
    probabilities = np.full(len(pairs), np.nan)

    if len(pairs):
        classifier = create_classifier(config.classifier, seed=config.seed)
        learning = ActiveLearner(session, classifier, rng, logger).run()
        probabilities = learning.probabilities

        if config.recall_search and learning.model is not None:
            recall = recall_search(session, probabilities, rng, logger)

    labels = session.label_array()
    if learning is not None and learning.model is None and not session.all_confirmed():
        raise ModelFitError("Some candidate pairs have neither a label nor a fitted model")

    if logger:
        with logger.stage(CUTOFF_STAGE, expected_items=len(pairs)) as counters:
            cutoff = select_cutoff(probabilities, labels, config.cutoff_range, logger)
            counters["status"] = str(cutoff.status)
    else:
        cutoff = select_cutoff(probabilities, labels, config.cutoff_range)

    final = effective_probabilities(probabilities, labels)
    data = assemble_output(
        blocking,
        pairs,
        final,
        store,
        cutoff,
        by=config.by,
        blocking_variables=config.blocking_variables or [],
        return_all_pairs=config.return_all_pairs,
        logger=logger,
    )

    return LinkageResult(
        data=data,
        cutoff=cutoff,
        labels=store,
        pairs=pairs,
        probabilities=final,
        blocking=blocking.stats,
        learning=learning,
        recall=recall,
        oracle_calls=session.oracle_calls,
        labels_total=store.oracle_confirmed_count(),
    )


def run_linkage(
    df_a: pd.DataFrame,
    df_b: pd.DataFrame,
    config: LinkageConfig,
    embedder: EmbeddingProvider,
    oracle: MatchOracle,
    logger: AuditLogger | None = None,
) -> LinkageResult:
    """Link dataset A to dataset B.

    Parameters
    ----------
    df_a : pd.DataFrame
        Left dataset; every row appears in the output.
    df_b : pd.DataFrame
        Right dataset.
    config : LinkageConfig
        Linkage configuration.
    embedder : EmbeddingProvider
        Embedding collaborator.
    oracle : MatchOracle
        Match oracle collaborator.
    logger : AuditLogger | None, optional
        Audit logger for observability events.

    Returns
    -------
    LinkageResult
        Linked table plus labels, cutoff and diagnostics.

    Raises
    ------
    ConfigurationError
        On missing fields or zero blocking overlap, before any remote call.
    ProviderError
        If a collaborator fails with a non-retryable error.
    ModelFitError
        If no classifier can be fitted and some pairs remain unlabeled.
    """
    try:
        return _run_stages(df_a, df_b, config, embedder, oracle, logger)
    except FuzzyLinkError as e:
        if logger:
            logger.error(
                type(e).__name__,
                str(e),
                stage=logger.current_stage,
                traceback=traceback.format_exc(),
            )
        raise
