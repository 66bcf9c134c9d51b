from __future__ import annotations

import os
from pathlib import Path

import pytest

from api_watchdog.errors import ReferenceStoreError
from api_watchdog.housekeeping.janitor import FileJanitor

from conftest import FakeStore

QR = "telegram_qr.png"


def _populate(directory: Path, *names: str) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for name in names:
        (directory / name).write_bytes(b"img")


@pytest.mark.asyncio
async def test_clean_deletes_only_unreferenced_files(tmp_path: Path, status, event_log) -> None:
    images = tmp_path / "images"
    _populate(images, "A.png", "B.png", "C.png", QR)
    janitor = FileJanitor(
        FakeStore({"A.png", "B.png"}), status, event_log, images_dir=images, protected_name=QR
    )

    deleted = await janitor.clean()

    assert deleted == 1
    assert sorted(p.name for p in images.iterdir()) == ["A.png", "B.png", QR]
    assert status.images_cleaned_today == 1
    assert any("Deleted 1 file(s)" in line for line in event_log.tail())


@pytest.mark.asyncio
async def test_clean_accumulates_daily_counter(tmp_path: Path, status, event_log) -> None:
    images = tmp_path / "images"
    store = FakeStore(set())
    janitor = FileJanitor(store, status, event_log, images_dir=images, protected_name=QR)

    _populate(images, "x.jpg", "y.jpg")
    assert await janitor.clean() == 2
    _populate(images, "z.jpg")
    assert await janitor.clean() == 1

    assert status.images_cleaned_today == 3


@pytest.mark.asyncio
async def test_store_failure_returns_zero_and_keeps_files(tmp_path: Path, status, event_log) -> None:
    images = tmp_path / "images"
    _populate(images, "orphan.png")
    store = FakeStore(error=ReferenceStoreError("connection refused"))
    janitor = FileJanitor(store, status, event_log, images_dir=images, protected_name=QR)

    assert await janitor.clean() == 0
    assert (images / "orphan.png").exists()
    assert status.images_cleaned_today == 0
    assert any("Cleanup error: connection refused" in line for line in event_log.tail())


@pytest.mark.asyncio
async def test_missing_directory_returns_zero(tmp_path: Path, status, event_log) -> None:
    janitor = FileJanitor(
        FakeStore({"a"}), status, event_log, images_dir=tmp_path / "nope", protected_name=QR
    )

    assert await janitor.clean() == 0
    assert status.images_cleaned_today == 0


@pytest.mark.asyncio
async def test_error_mid_run_keeps_earlier_deletions(tmp_path: Path, status, event_log, monkeypatch) -> None:
    images = tmp_path / "images"
    _populate(images, "a.png", "b.png", "c.png")
    janitor = FileJanitor(FakeStore(set()), status, event_log, images_dir=images, protected_name=QR)

    real_unlink = os.unlink
    calls = {"n": 0}

    def flaky_unlink(path) -> None:
        calls["n"] += 1
        if calls["n"] == 2:
            raise PermissionError("locked")
        real_unlink(path)

    monkeypatch.setattr(os, "unlink", flaky_unlink)

    assert await janitor.clean() == 0
    assert len(list(images.iterdir())) == 2
    assert status.images_cleaned_today == 0


@pytest.mark.asyncio
async def test_subdirectories_are_left_alone(tmp_path: Path, status, event_log) -> None:
    images = tmp_path / "images"
    _populate(images, "orphan1.png", "orphan2.png", "orphan3.png")
    (images / "thumbs").mkdir()
    (images / "thumbs" / "t.png").write_bytes(b"thumb")
    janitor = FileJanitor(FakeStore(set()), status, event_log, images_dir=images, protected_name=QR)

    assert await janitor.clean() == 3
    assert [p.name for p in images.iterdir()] == ["thumbs"]
    assert (images / "thumbs" / "t.png").exists()
    assert status.images_cleaned_today == 3
    assert not any("Cleanup error" in line for line in event_log.tail())
