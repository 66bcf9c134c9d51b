from __future__ import annotations

import os
from pathlib import Path

import psutil
import pytest

from api_watchdog.recovery.supervisor import ProcessSupervisor


def _supervisor(event_log, tmp_path: Path, **kwargs) -> ProcessSupervisor:
    defaults = dict(
        api_path=str(tmp_path),
        start_command="echo started",
        managed_process_name="node",
        reboot_command="echo reboot",
    )
    defaults.update(kwargs)
    return ProcessSupervisor(event_log, **defaults)


def test_restart_spawns_detached_command(event_log, tmp_path: Path) -> None:
    marker = tmp_path / "started.txt"
    sup = _supervisor(event_log, tmp_path, start_command=f"echo ok > {marker.name}")

    result = sup.restart()

    assert result.action == "restart"
    assert result.triggered is True
    assert result.detail.startswith("pid=")
    sup._children[0].wait(timeout=10)
    assert marker.read_text().strip() == "ok"


def test_restart_with_missing_working_directory_is_reported(event_log, tmp_path: Path) -> None:
    sup = _supervisor(event_log, tmp_path, api_path=str(tmp_path / "missing"))

    result = sup.restart()

    assert result.triggered is False
    assert any("Error running restart" in line for line in event_log.tail())


def test_dry_run_does_not_execute(event_log, tmp_path: Path) -> None:
    marker = tmp_path / "rebooted.txt"
    sup = _supervisor(event_log, tmp_path, reboot_command=f"touch {marker}", dry_run=True)

    result = sup.restart_host()

    assert result.triggered is True
    assert result.detail == "dry-run"
    assert not marker.exists()


class _FakeProc:
    def __init__(self, pid: int, name: str, vanish: bool = False) -> None:
        self.info = {"pid": pid, "name": name}
        self.vanish = vanish
        self.terminated = False

    def terminate(self) -> None:
        if self.vanish:
            raise psutil.NoSuchProcess(self.info["pid"])
        self.terminated = True


def test_kill_all_managed_skips_self_and_other_names(event_log, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    procs = [
        _FakeProc(os.getpid(), "node"),
        _FakeProc(101, "node"),
        _FakeProc(102, "NODE.EXE"),
        _FakeProc(103, "python"),
        _FakeProc(104, "node", vanish=True),
    ]
    monkeypatch.setattr(psutil, "process_iter", lambda attrs=None: iter(procs))
    sup = _supervisor(event_log, tmp_path)

    result = sup.kill_all_managed()

    assert result.triggered is True
    assert result.detail == "terminated=2"
    assert [p.info["pid"] for p in procs if p.terminated] == [101, 102]
