"""Composition of a configured extraction and review stack."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from strata.classifier.engine import SemanticErrorClassifier
from strata.classifier.fallback import FallbackManager
from strata.config.settings import StrataConfig
from strata.persistence.adapter import PersistenceAdapter
from strata.persistence.ports import (
    ClockPort,
    IdentityPort,
    IdGeneratorPort,
    NotifierPort,
    StoragePort,
)
from strata.persistence.schema import RecordSchemaValidator
from strata.pipeline.extractor import StrataExtractor
from strata.review.session import ReviewEditModel
from strata.signals.emitter import SignalEmitter
from strata.telemetry.errors import configure_logging


@dataclass
class ReviewStack:
    config: StrataConfig
    extractor: StrataExtractor
    review: ReviewEditModel


def create_review_stack(
    storage: StoragePort,
    config: StrataConfig | None = None,
    *,
    identity: IdentityPort | None = None,
    clock: ClockPort | None = None,
    id_generator: IdGeneratorPort | None = None,
    notifier: NotifierPort | None = None,
    session_id: str = "review",
    ledger_path: Path | None = None,
) -> ReviewStack:
    """Wire extractor and review model from one config; applies its log level."""
    config = config or StrataConfig()
    configure_logging(config.log_level)

    classifier = SemanticErrorClassifier(config.classifier)
    fallback = FallbackManager(config.fallback)
    adapter = PersistenceAdapter(
        storage=storage,
        identity=identity,
        clock=clock,
        id_generator=id_generator,
        notifier=notifier,
        schema_validator=RecordSchemaValidator(),
        config=config.persistence,
    )
    return ReviewStack(
        config=config,
        extractor=StrataExtractor(config, classifier=classifier, fallback=fallback),
        review=ReviewEditModel(
            adapter, signals=SignalEmitter(session_id, ledger_path), fallback=fallback
        ),
    )
