from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

from smartthings_auth.models.credentials import to_epoch_millis
from smartthings_auth.services import credential_store as credential_store_module
from smartthings_auth.services.credential_store import CredentialStore

TOKENS = {
    "access_token": "AT",
    "refresh_token": "RT",
    "expires_in": 3600,
    "installed_app_id": "app-1",
    "location_id": "loc-1",
}


class RecordingConfigSync:
    def __init__(self) -> None:
        self.tokens: list[str] = []

    def sync_access_token(self, access_token: str) -> bool:
        self.tokens.append(access_token)
        return True


def _store(tmp_path: Path, **kwargs) -> CredentialStore:
    return CredentialStore(tmp_path / "smartthings_tokens.json", **kwargs)


@pytest.mark.asyncio
async def test_update_then_load_round_trips_record(tmp_path: Path) -> None:
    issued_at = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
    store = _store(tmp_path)

    record = await store.update(TOKENS, issued_at=issued_at)

    reloaded = _store(tmp_path).load()
    assert reloaded == record
    assert reloaded.access_token == "AT"
    assert reloaded.installed_app_id == "app-1"
    assert reloaded.location_id == "loc-1"


@pytest.mark.asyncio
async def test_update_computes_expiry_from_issue_time(
    tmp_path: Path, fixed_now: datetime
) -> None:
    store = _store(tmp_path)

    record = await store.update(
        {**TOKENS, "refresh_token_expires_at": 1}, issued_at=fixed_now
    )

    assert record.access_expires_at == fixed_now + timedelta(seconds=3600)
    assert record.refresh_expires_at == fixed_now + timedelta(days=30)


@pytest.mark.asyncio
async def test_persisted_file_uses_epoch_millis(tmp_path: Path, fixed_now: datetime) -> None:
    store = _store(tmp_path)
    await store.update(TOKENS, issued_at=fixed_now)

    stored = json.loads(store.path.read_text(encoding="utf-8"))

    assert stored["access_token"] == "AT"
    assert stored["refresh_token"] == "RT"
    assert stored["expires_at"] == to_epoch_millis(fixed_now) + 3_600_000
    assert stored["refresh_token_expires_at"] == (
        to_epoch_millis(fixed_now) + 30 * 24 * 3_600_000
    )


def test_load_accepts_existing_token_file(tmp_path: Path) -> None:
    path = tmp_path / "smartthings_tokens.json"
    path.write_text(
        json.dumps(
            {
                "access_token": "legacy-access",
                "refresh_token": "legacy-refresh",
                "expires_in": 86399,
                "expires_at": 1714564800000,
                "refresh_token_expires_at": 1717156800000,
            }
        ),
        encoding="utf-8",
    )

    record = CredentialStore(path).load()

    assert record is not None
    assert record.access_token == "legacy-access"
    assert record.access_expires_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_load_missing_file_returns_none(tmp_path: Path) -> None:
    assert _store(tmp_path).load() is None


def test_load_overlong_path_returns_none(tmp_path: Path) -> None:
    store = CredentialStore(tmp_path / ("x" * 300) / "smartthings_tokens.json")

    assert store.load() is None
    assert store.record is None


def test_load_directory_in_place_of_file_returns_none(tmp_path: Path) -> None:
    path = tmp_path / "smartthings_tokens.json"
    path.mkdir()

    assert CredentialStore(path).load() is None


@pytest.mark.parametrize(
    "contents",
    ["not json", "[]", json.dumps({"access_token": "only-half"})],
)
def test_load_corrupt_file_returns_none(tmp_path: Path, contents: str) -> None:
    path = tmp_path / "smartthings_tokens.json"
    path.write_text(contents, encoding="utf-8")

    store = CredentialStore(path)

    assert store.load() is None
    assert store.record is None


@pytest.mark.asyncio
async def test_update_merges_onto_existing_record(tmp_path: Path, fixed_now: datetime) -> None:
    store = _store(tmp_path)
    await store.update(TOKENS, issued_at=fixed_now)

    later = fixed_now + timedelta(hours=1)
    record = await store.update(
        {"access_token": "AT2", "expires_in": 600}, issued_at=later
    )

    assert record.access_token == "AT2"
    assert record.refresh_token == "RT"
    assert record.location_id == "loc-1"
    assert record.access_expires_at == later + timedelta(seconds=600)
    assert record.refresh_expires_at == later + timedelta(days=30)


@pytest.mark.asyncio
async def test_incomplete_first_update_leaves_store_empty(tmp_path: Path) -> None:
    store = _store(tmp_path)

    with pytest.raises(ValidationError):
        await store.update({"access_token": "AT", "expires_in": 60})

    assert store.record is None
    assert not store.path.exists()


@pytest.mark.asyncio
async def test_validity_predicates_apply_buffer(tmp_path: Path, fixed_now: datetime) -> None:
    store = _store(tmp_path, refresh_buffer=timedelta(minutes=5))
    await store.update(TOKENS, issued_at=fixed_now)
    access_expiry = fixed_now + timedelta(hours=1)

    assert store.is_access_valid(access_expiry - timedelta(minutes=5, seconds=1))
    assert not store.is_access_valid(access_expiry - timedelta(minutes=5))
    assert not store.is_access_valid(access_expiry)
    assert store.is_refresh_valid(access_expiry)
    assert not store.is_refresh_valid(fixed_now + timedelta(days=30))


@pytest.mark.asyncio
@pytest.mark.parametrize("lifetime_seconds", [1, 59, 3600, 86_399])
async def test_access_invalid_from_expiry_onwards_without_buffer(
    tmp_path: Path, fixed_now: datetime, lifetime_seconds: int
) -> None:
    store = _store(tmp_path, refresh_buffer=timedelta(0))
    record = await store.update(
        {**TOKENS, "expires_in": lifetime_seconds}, issued_at=fixed_now
    )

    expiry = record.access_expires_at
    assert store.is_access_valid(expiry - timedelta(milliseconds=1))
    assert not store.is_access_valid(expiry)
    assert not store.is_access_valid(expiry + timedelta(seconds=1))


def test_validity_is_false_without_record(tmp_path: Path, fixed_now: datetime) -> None:
    store = _store(tmp_path)

    assert not store.is_access_valid(fixed_now)
    assert not store.is_refresh_valid(fixed_now)
    assert store.expiry_info(fixed_now).access_expires_in == timedelta(0)


@pytest.mark.asyncio
async def test_expiry_info_clamps_at_zero(tmp_path: Path, fixed_now: datetime) -> None:
    store = _store(tmp_path)
    await store.update(TOKENS, issued_at=fixed_now)

    info = store.expiry_info(fixed_now + timedelta(hours=2))

    assert info.access_expires_in == timedelta(0)
    assert info.refresh_expires_in == timedelta(days=30, hours=-2)


@pytest.mark.asyncio
async def test_clear_removes_file_and_is_idempotent(tmp_path: Path) -> None:
    store = _store(tmp_path)
    await store.update(TOKENS)
    assert store.path.exists()

    await store.clear()
    await store.clear()

    assert store.record is None
    assert not store.path.exists()


@pytest.mark.asyncio
async def test_update_propagates_access_token_to_host_config(tmp_path: Path) -> None:
    sync = RecordingConfigSync()
    store = _store(tmp_path, config_sync=sync)

    await store.update(TOKENS)
    await store.update({"access_token": "AT2", "expires_in": 60})

    assert sync.tokens == ["AT", "AT2"]


@pytest.mark.asyncio
async def test_failed_save_is_retried_by_flush(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    real_replace = os.replace
    attempts = {"count": 0}

    def flaky_replace(src, dst):
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise PermissionError("disk says no")
        return real_replace(src, dst)

    monkeypatch.setattr(credential_store_module.os, "replace", flaky_replace)
    store = _store(tmp_path)

    record = await store.update(TOKENS)

    assert store.record == record
    assert store.pending_write
    assert not store.path.exists()
    assert not list(tmp_path.glob(".tmp_*"))

    assert await store.flush()
    assert not store.pending_write
    assert _store(tmp_path).load() == record
