# /wim_inspector/domain/errors.py
from __future__ import annotations


class WimInspectorError(Exception):
    """Base class for failures surfaced to callers."""


class ContainerAccessError(WimInspectorError):
    """The container could not be opened or read. Fatal to the whole request."""

    def __init__(self, path: str, cause: str) -> None:
        super().__init__(f"cannot read container {path}: {cause}")
        self.path = path
        self.cause = cause


class InvalidImageIndexError(WimInspectorError):
    def __init__(self, index: int, image_count: int) -> None:
        super().__init__(f"invalid image index {index}: must be between 1 and {image_count}")
        self.index = index
        self.image_count = image_count
