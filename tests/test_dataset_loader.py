from __future__ import annotations

import asyncio
import json
from pathlib import Path

import httpx
import pytest

from decision_graph.modules.catalog.errors import (
    DATA_LOAD_HTTP_STATUS,
    DATA_LOAD_JSON_PARSE,
    DATA_LOAD_NETWORK,
    DATA_LOAD_NOT_FOUND,
    DATA_LOAD_SCHEMA_VALIDATE,
    DATA_LOAD_SHAPE,
    DataLoadError,
)
from decision_graph.modules.catalog.loader import fetch_dataset, load_dataset, parse_dataset, read_dataset
from tests.support.dataset_seed import REPO_DATASET, base_payload


def _json_transport(payload: object, *, status_code: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return httpx.MockTransport(handler)


def test_read_dataset_from_file(tmp_path: Path) -> None:
    path = tmp_path / "decisions.json"
    path.write_text(json.dumps(base_payload()), encoding="utf-8")

    dataset = read_dataset(path)

    assert sorted(dataset.decisions) == ["d1", "d2"]
    assert dataset.tape_order == ("tape1", "tape2", "tape3")


def test_shipped_dataset_loads() -> None:
    dataset = read_dataset(REPO_DATASET)

    assert dataset.meta.title == "Seed Archive"
    assert len(dataset.decisions) == 4


def test_missing_file_is_a_load_failure(tmp_path: Path) -> None:
    with pytest.raises(DataLoadError) as exc_info:
        read_dataset(tmp_path / "missing.json")
    assert exc_info.value.error_kind == DATA_LOAD_NOT_FOUND


def test_invalid_json_is_a_load_failure(tmp_path: Path) -> None:
    path = tmp_path / "decisions.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(DataLoadError) as exc_info:
        read_dataset(path)
    assert exc_info.value.error_kind == DATA_LOAD_JSON_PARSE


def test_non_object_payload_is_rejected() -> None:
    with pytest.raises(DataLoadError) as exc_info:
        parse_dataset(["decisions"])
    assert exc_info.value.error_kind == DATA_LOAD_SHAPE


def test_schema_violation_is_a_load_failure() -> None:
    payload = base_payload()
    payload["decisions"]["d1"].pop("tape")

    with pytest.raises(DataLoadError) as exc_info:
        parse_dataset(payload, source="inline")
    assert exc_info.value.error_kind == DATA_LOAD_SCHEMA_VALIDATE
    assert exc_info.value.source == "inline"


def test_fetch_dataset_over_http() -> None:
    dataset = asyncio.run(
        fetch_dataset("https://example.test/data/decisions.json", transport=_json_transport(base_payload()))
    )

    assert "stat_trust_+5" in dataset.effects


def test_fetch_dataset_http_error_status() -> None:
    with pytest.raises(DataLoadError) as exc_info:
        asyncio.run(
            fetch_dataset(
                "https://example.test/data/decisions.json",
                transport=_json_transport({"detail": "missing"}, status_code=404),
            )
        )
    assert exc_info.value.error_kind == DATA_LOAD_HTTP_STATUS


def test_fetch_dataset_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(DataLoadError) as exc_info:
        asyncio.run(fetch_dataset("https://example.test/data/decisions.json", transport=httpx.MockTransport(handler)))
    assert exc_info.value.error_kind == DATA_LOAD_NETWORK


def test_load_dataset_dispatches_urls_to_fetch() -> None:
    dataset = load_dataset("https://example.test/data/decisions.json", transport=_json_transport(base_payload()))

    assert sorted(dataset.consumers) == ["c_tape2_seen", "c_tape3_cold"]


def test_load_dataset_reads_paths(tmp_path: Path) -> None:
    path = tmp_path / "decisions.json"
    path.write_text(json.dumps(base_payload()), encoding="utf-8")

    dataset = load_dataset(str(path))

    assert dataset.decisions["d2"].tape == "tape2"
