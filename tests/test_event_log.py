from __future__ import annotations

import re
from pathlib import Path

from api_watchdog.event_log import EventLog

LINE_RE = re.compile(r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] (.*)$")


def test_record_appends_timestamped_lines(tmp_path: Path) -> None:
    log = EventLog(tmp_path / "nested" / "monitor.log")

    log.record("first")
    log.record("second")

    lines = (tmp_path / "nested" / "monitor.log").read_text(encoding="utf-8").splitlines()
    assert [LINE_RE.match(line).group(1) for line in lines] == ["first", "second"]


def test_tail_returns_last_lines_in_order(tmp_path: Path) -> None:
    log = EventLog(tmp_path / "monitor.log")
    for i in range(20):
        log.record(f"msg {i}")

    tail = log.tail(3)

    assert [LINE_RE.match(line).group(1) for line in tail] == ["msg 17", "msg 18", "msg 19"]


def test_tail_of_missing_file_is_empty(tmp_path: Path) -> None:
    assert EventLog(tmp_path / "monitor.log").tail() == []


def test_record_never_raises_on_io_error(tmp_path: Path) -> None:
    # A directory where the file should be makes every append fail.
    target = tmp_path / "monitor.log"
    target.mkdir()
    log = EventLog(target)

    line = log.record("still fine")

    assert line.endswith("] still fine")
