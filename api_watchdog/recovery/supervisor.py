"""Process control for the monitored API and its host."""

from __future__ import annotations

import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

import psutil
import structlog

from ..event_log import EventLog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ActionResult:
    """Outcome of triggering a process action.

    ``triggered`` only says whether the command was launched; whether the API
    actually came back is decided by the next health check.
    """

    action: str
    triggered: bool
    detail: str = ""


def _detached_popen_kwargs() -> dict:
    if sys.platform.startswith("win"):
        flags = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
        return {"creationflags": flags}
    return {"start_new_session": True}


class ProcessSupervisor:
    """Starts and kills the monitored API, and can reboot the host.

    Every action is fire-and-forget: commands are spawned detached and never
    awaited. Failures are logged, never raised.
    """

    def __init__(
        self,
        event_log: EventLog,
        *,
        api_path: str,
        start_command: str,
        managed_process_name: str,
        reboot_command: str,
        dry_run: bool = False,
    ):
        self.event_log = event_log
        self.api_path = Path(api_path)
        self.start_command = start_command
        self.managed_process_name = managed_process_name
        self.reboot_command = reboot_command
        self.dry_run = dry_run
        self._children: list[subprocess.Popen] = []

    def restart(self) -> ActionResult:
        """Launch the API start command in its working directory."""
        self.event_log.record("Starting API process...")
        return self._spawn("restart", self.start_command, cwd=self.api_path)

    def restart_host(self) -> ActionResult:
        """Issue the delayed OS reboot command."""
        self.event_log.record("Requesting host reboot...")
        return self._spawn("restart_host", self.reboot_command)

    def kill_all_managed(self) -> ActionResult:
        """Terminate every process named like the managed runtime, except ourselves."""
        target = self.managed_process_name.lower()
        names = {target, f"{target}.exe"}
        own_pid = os.getpid()
        killed: list[int] = []

        try:
            for proc in psutil.process_iter(["pid", "name"]):
                try:
                    if proc.info["pid"] == own_pid:
                        continue
                    if (proc.info.get("name") or "").lower() not in names:
                        continue
                    if self.dry_run:
                        logger.info("Dry run: would terminate process", pid=proc.info["pid"])
                    else:
                        proc.terminate()
                    killed.append(proc.info["pid"])
                except (psutil.NoSuchProcess, psutil.AccessDenied):
                    continue
        except Exception as e:
            self.event_log.record(f"Error killing {self.managed_process_name} processes: {e}")
            return ActionResult("kill_all_managed", False, str(e))

        self.event_log.record(f"Terminated {len(killed)} {self.managed_process_name} process(es)")
        return ActionResult("kill_all_managed", True, f"terminated={len(killed)}")

    def _spawn(self, action: str, command: str, cwd: Path | None = None) -> ActionResult:
        self._reap()
        if self.dry_run:
            logger.info("Dry run: command not executed", action=action, command=command, cwd=str(cwd or ""))
            return ActionResult(action, True, "dry-run")

        try:
            proc = subprocess.Popen(
                command,
                shell=True,
                cwd=str(cwd) if cwd else None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                **_detached_popen_kwargs(),
            )
        except (OSError, ValueError) as e:
            self.event_log.record(f"Error running {action}: {e}")
            return ActionResult(action, False, str(e))

        self._children.append(proc)
        logger.info("Spawned process", action=action, pid=proc.pid)
        return ActionResult(action, True, f"pid={proc.pid}")

    def _reap(self) -> None:
        self._children = [p for p in self._children if p.poll() is None]
