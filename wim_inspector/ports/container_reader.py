# /wim_inspector/ports/container_reader.py
from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Protocol


class ContainerReaderPort(Protocol):
    def get_image_count(self) -> int:
        """Number of images in the container."""

    def get_boot_index(self) -> int:
        """1-based index of the bootable image, 0 when none."""

    def get_image_name(self, index: int) -> str | None: ...

    def get_image_description(self, index: int) -> str | None: ...

    def get_property(self, index: int, path: str) -> str | None:
        """Value at a '/'-delimited, case-sensitive property path; None when absent."""

    def get_raw_xml(self, index: int) -> str | None:
        """Raw XML metadata blob of one image."""

    def get_total_bytes(self) -> int | None:
        """Total bytes recorded for the whole container, if known."""


class ContainerOpenerPort(Protocol):
    def open(self, path: str) -> AbstractContextManager[ContainerReaderPort]:
        """Open a container; raises ContainerAccessError when it cannot be read."""
