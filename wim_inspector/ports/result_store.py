# /wim_inspector/ports/result_store.py
from __future__ import annotations

from typing import Protocol


class ResultStorePort(Protocol):
    def set_pending(self, job_id: str) -> None: ...

    def set_error(self, job_id: str, error: str) -> None: ...

    def set_result(self, job_id: str, result: dict) -> None: ...

    def get(self, job_id: str) -> dict | None:
        """Return {status, result?, error?} or None for an unknown job."""
