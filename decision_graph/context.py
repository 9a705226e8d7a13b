from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from decision_graph.config import settings
from decision_graph.modules.catalog.loader import load_dataset
from decision_graph.modules.catalog.schemas import DecisionDataset
from decision_graph.modules.graph.indexer import GraphIndex, build_graph_index
from decision_graph.modules.player.engine import PlayerStateEngine
from decision_graph.modules.player.persistence import SaveStore, slot_key
from decision_graph.modules.validation.schemas import ValidationReport
from decision_graph.modules.validation.validator import validate_dataset

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EngineContext:
    """Catalogs, reverse index and load-time report for one dataset.

    Built once per session or test and handed to every component that needs it.
    """

    dataset: DecisionDataset
    index: GraphIndex
    report: ValidationReport | None = None

    def create_player(
        self,
        *,
        store: SaveStore | None = None,
        slot: str | None = None,
        **engine_kwargs: Any,
    ) -> PlayerStateEngine:
        engine = PlayerStateEngine(
            self.dataset,
            self.index,
            store=store,
            save_key=slot_key(engine_kwargs.pop("save_key", None) or settings.save_key, slot),
            **engine_kwargs,
        )
        return engine.load()


def build_engine_context(dataset: DecisionDataset, *, validate: bool | None = None) -> EngineContext:
    index = build_graph_index(dataset)
    should_validate = settings.validate_on_load if validate is None else validate
    report = None
    if should_validate:
        report = validate_dataset(dataset, index)
        for issue in [*report.errors, *report.warnings]:
            logger.warning("[%s] %s", issue.code, issue.message)
    logger.info(
        "Decision graph ready: %d decisions, %d effects, %d consumer edges",
        len(dataset.decisions),
        len(dataset.effects),
        index.summary.consumer_edges if index.summary else 0,
    )
    return EngineContext(dataset=dataset, index=index, report=report)


def load_engine_context(source: str | Path | None = None, *, validate: bool | None = None) -> EngineContext:
    return build_engine_context(load_dataset(source), validate=validate)
