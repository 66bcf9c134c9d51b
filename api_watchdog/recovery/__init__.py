"""Recovery actions: restart the API, reboot the host."""

from .supervisor import ActionResult, ProcessSupervisor

__all__ = ["ActionResult", "ProcessSupervisor"]
