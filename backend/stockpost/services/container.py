# Overview: Wiring of repositories and services; built once per app in create_app.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..repositories import (
    AdjustmentRepository,
    LedgerRepository,
    LotRepository,
    MovementRepository,
    PositionRepository,
    PriceHistoryRepository,
    ReferenceDataRepository,
    SequenceRepository,
)
from .adjustment_service import AdjustmentService, ApprovalSettings
from .gl_posting_service import LedgerPoster
from .inventory_ledger import InventoryLedger
from .lot_tracker import LotTracker
from .movement_service import MovementJournal
from .price_history_service import PriceHistoryPolicy, PriceHistoryRecorder
from .reference_service import ReferenceResolver

EXTENSION_KEY = "stockpost.services"


@dataclass
class Services:
    refs: ReferenceDataRepository
    resolver: ReferenceResolver
    positions: PositionRepository
    inventory: InventoryLedger
    price_history: PriceHistoryRecorder
    ledger: LedgerPoster
    movements: MovementJournal
    lots: LotTracker
    adjustments: AdjustmentService


def build_services(config, session=None) -> Services:
    """
    Construct the service graph from app config.

    session defaults to the Flask-SQLAlchemy scoped session, so every
    repository follows the current thread/app context.
    """
    session = session if session is not None else db.session

    refs = ReferenceDataRepository(session)
    resolver = ReferenceResolver(refs)
    positions = PositionRepository(session)
    inventory = InventoryLedger(positions, allow_negative=bool(config.get("ALLOW_NEGATIVE_STOCK", False)))
    recorder = PriceHistoryRecorder(
        PriceHistoryRepository(session), resolver, PriceHistoryPolicy.from_config(config), session
    )
    poster = LedgerPoster(LedgerRepository(session), refs)
    journal = MovementJournal(MovementRepository(session))
    lots = LotTracker(LotRepository(session))

    adjustments = AdjustmentService(
        session=session,
        adjustments=AdjustmentRepository(session),
        positions=positions,
        sequences=SequenceRepository(session),
        refs=refs,
        resolver=resolver,
        inventory=inventory,
        recorder=recorder,
        poster=poster,
        journal=journal,
        lots=lots,
        settings=ApprovalSettings.from_config(config),
    )

    return Services(
        refs=refs,
        resolver=resolver,
        positions=positions,
        inventory=inventory,
        price_history=recorder,
        ledger=poster,
        movements=journal,
        lots=lots,
        adjustments=adjustments,
    )


def init_services(app) -> Services:
    services = build_services(app.config)
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
