from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError

from decision_graph.config import settings
from decision_graph.modules.catalog.errors import (
    DATA_LOAD_HTTP_STATUS,
    DATA_LOAD_JSON_PARSE,
    DATA_LOAD_NETWORK,
    DATA_LOAD_NOT_FOUND,
    DATA_LOAD_READ,
    DATA_LOAD_SCHEMA_VALIDATE,
    DATA_LOAD_SHAPE,
    DataLoadError,
)
from decision_graph.modules.catalog.schemas import DecisionDataset

logger = logging.getLogger(__name__)


def _is_url(source: str | Path) -> bool:
    text = str(source)
    return text.startswith("http://") or text.startswith("https://")


def parse_dataset(payload: Any, *, source: str = "<memory>") -> DecisionDataset:
    if not isinstance(payload, dict):
        raise DataLoadError(
            f"dataset must be a JSON object: {source}",
            error_kind=DATA_LOAD_SHAPE,
            source=source,
        )
    try:
        dataset = DecisionDataset.model_validate(payload)
    except ValidationError as exc:
        raise DataLoadError(
            f"dataset schema validation failed for {source}: {exc}",
            error_kind=DATA_LOAD_SCHEMA_VALIDATE,
            source=source,
        ) from exc

    logger.info(
        "Loaded dataset from %s: %d decisions, %d effects, %d consumers, %d tapes",
        source,
        len(dataset.decisions),
        len(dataset.effects),
        len(dataset.consumers),
        len(dataset.tape_order),
    )
    return dataset


def parse_dataset_text(text: str, *, source: str = "<memory>") -> DecisionDataset:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DataLoadError(
            f"dataset is not valid JSON ({source}): {exc}",
            error_kind=DATA_LOAD_JSON_PARSE,
            source=source,
        ) from exc
    return parse_dataset(payload, source=source)


def read_dataset(path: str | Path) -> DecisionDataset:
    dataset_path = Path(path)
    if not dataset_path.exists():
        raise DataLoadError(
            f"dataset file not found: {dataset_path}",
            error_kind=DATA_LOAD_NOT_FOUND,
            source=str(dataset_path),
        )
    try:
        text = dataset_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DataLoadError(
            f"dataset file could not be read: {dataset_path}: {exc}",
            error_kind=DATA_LOAD_READ,
            source=str(dataset_path),
        ) from exc
    return parse_dataset_text(text, source=str(dataset_path))


async def fetch_dataset(
    url: str,
    *,
    timeout_s: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> DecisionDataset:
    timeout = httpx.Timeout(timeout_s if timeout_s is not None else settings.fetch_timeout_s)
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise DataLoadError(
                f"Failed to load {url}: HTTP {exc.response.status_code}",
                error_kind=DATA_LOAD_HTTP_STATUS,
                source=url,
            ) from exc
        except httpx.HTTPError as exc:
            raise DataLoadError(
                f"Failed to load {url}: {exc}",
                error_kind=DATA_LOAD_NETWORK,
                source=url,
            ) from exc
    return parse_dataset_text(response.text, source=url)


def load_dataset(
    source: str | Path | None = None,
    *,
    timeout_s: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> DecisionDataset:
    """Load the dataset from a file path or an http(s) URL.

    Defaults to ``settings.dataset_url`` when configured, else ``settings.dataset_path``.
    """
    if source is None:
        source = settings.dataset_url or settings.dataset_path
    if _is_url(source):
        return asyncio.run(fetch_dataset(str(source), timeout_s=timeout_s, transport=transport))
    return read_dataset(source)
