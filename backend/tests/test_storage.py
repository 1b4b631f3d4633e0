"""Tests for the local object store and settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from ragdesk.core.config import Settings
from ragdesk.core.errors import NotFoundError
from ragdesk.storage.objects import LocalObjectStore
from ragdesk.utils.ids import upload_key


def test_put_get_delete(tmp_path: Path) -> None:
    store = LocalObjectStore(tmp_path / "objects")
    key = upload_key("My Report (final).pdf")
    assert key.startswith("uploads/")
    assert key.endswith("-My_Report__final_.pdf")

    locator = store.put(b"%PDF-data", key)
    assert locator.startswith("file://")
    assert store.key_from_locator(locator) == key
    assert store.get(key) == b"%PDF-data"

    store.delete(key)
    with pytest.raises(NotFoundError):
        store.get(key)
    with pytest.raises(NotFoundError):
        store.delete(key)


def test_rejects_escaping_keys(tmp_path: Path) -> None:
    store = LocalObjectStore(tmp_path / "objects")
    with pytest.raises(ValueError):
        store.put(b"x", "../outside.pdf")
    with pytest.raises(ValueError):
        store.key_from_locator((tmp_path / "elsewhere.pdf").as_uri())


def test_settings_yaml_and_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "chunking:\n  max_tokens: 300\nretrieval:\n  threshold: 0.6\nrate_limits:\n  query: '5/10'\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("RAGDESK_RETRIEVAL_LIMIT", "2")
    settings = Settings.from_yaml(config_path)
    assert settings.chunk_max_tokens == 300
    assert settings.similarity_threshold == 0.6
    assert settings.rate_limit_query == "5/10"
    assert settings.retrieval_limit == 2
    assert settings.db_path == tmp_path / "ragdesk.db"


def test_settings_reject_bad_rate() -> None:
    with pytest.raises(ValueError):
        Settings(rate_limit_upload="lots")
