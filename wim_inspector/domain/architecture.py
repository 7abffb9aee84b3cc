# /wim_inspector/domain/architecture.py
from __future__ import annotations

# PROCESSOR_ARCHITECTURE_* codes as stored in WIM XML <ARCH>
ARCHITECTURE_NAMES: dict[str, str] = {
    "0": "x86",
    "9": "x64",
    "12": "ARM64",
}


def normalize_architecture(code: str | None) -> str | None:
    """Map a vendor architecture code to a label; unknown codes pass through unchanged."""
    if code is None or not code.strip():
        return None
    code = code.strip()
    return ARCHITECTURE_NAMES.get(code, code)
