# tests/fakes.py
from __future__ import annotations

from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field

from wim_inspector.domain.errors import ContainerAccessError


@dataclass
class FakeImage:
    name: str | None = None
    description: str | None = None
    properties: dict[str, str] = field(default_factory=dict)
    xml: str | None = None


class FakeContainerReader:
    """
    In-memory container. Records every get_property/get_raw_xml call so tests
    can assert how often the underlying reader was hit.
    """

    def __init__(
        self,
        images: list[FakeImage],
        *,
        boot_index: int = 0,
        total_bytes: int | None = None,
        failing_paths: set[str] | None = None,
    ) -> None:
        self.images = images
        self.boot_index = boot_index
        self.total_bytes = total_bytes
        self.failing_paths = failing_paths or set()
        self.property_calls: Counter[tuple[int, str]] = Counter()
        self.xml_calls: Counter[int] = Counter()

    def _image(self, index: int) -> FakeImage:
        return self.images[index - 1]

    def get_image_count(self) -> int:
        return len(self.images)

    def get_boot_index(self) -> int:
        return self.boot_index

    def get_image_name(self, index: int) -> str | None:
        return self._image(index).name

    def get_image_description(self, index: int) -> str | None:
        return self._image(index).description

    def get_property(self, index: int, path: str) -> str | None:
        self.property_calls[(index, path)] += 1
        if path in self.failing_paths:
            raise RuntimeError(f"native read failed for {path}")
        return self._image(index).properties.get(path)

    def get_raw_xml(self, index: int) -> str | None:
        self.xml_calls[index] += 1
        return self._image(index).xml

    def get_total_bytes(self) -> int | None:
        return self.total_bytes


class BrokenReader(FakeContainerReader):
    def get_image_count(self) -> int:
        raise OSError("I/O error reading header")


class FakeOpener:
    def __init__(self, containers: dict[str, FakeContainerReader]) -> None:
        self.containers = containers
        self.opened: list[str] = []
        self.closed: list[str] = []

    @contextmanager
    def open(self, path: str):
        if path not in self.containers:
            raise ContainerAccessError(path, "file not found")
        self.opened.append(path)
        try:
            yield self.containers[path]
        finally:
            self.closed.append(path)


class InMemoryResultStore:
    def __init__(self):
        self._data = {}

    def set_pending(self, job_id):
        self._data[job_id] = {"status": "pending"}

    def set_error(self, job_id, error):
        self._data[job_id] = {"status": "error", "error": error}

    def set_result(self, job_id, result):
        self._data[job_id] = {"status": "done", "result": result}

    def get(self, job_id):
        return self._data.get(job_id)
