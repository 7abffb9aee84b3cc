# /wim_inspector/domain/image_service.py
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar

from wim_inspector.domain import field_specs as F
from wim_inspector.domain.errors import ContainerAccessError, InvalidImageIndexError
from wim_inspector.domain.field_specs import FIELD_SPECS, ResolvedValue
from wim_inspector.domain.property_cache import PropertyCache
from wim_inspector.domain.resolver import FieldResolver
from wim_inspector.domain.timestamps import format_timestamp
from wim_inspector.ports.container_reader import ContainerOpenerPort, ContainerReaderPort

LOG = logging.getLogger("domain.image_service")

BYTES_PER_MB = 1024 * 1024
XML_PREVIEW_CHARS = 1000

T = TypeVar("T")

# ==== DTOs ====


@dataclass(slots=True, frozen=True)
class ImageMetadataRecord:
    index: int
    name: str
    description: str | None = None
    size_bytes: int | None = None
    size_is_approximate: bool = False
    is_bootable: bool = False
    architecture: str | None = None
    hal: str | None = None
    version: str | None = None
    service_pack_build: str | None = None
    service_pack_level: int = 0
    installation: str | None = None
    product_type: str | None = None
    product_suite: str | None = None
    system_root: str | None = None
    edition: str | None = None
    languages: str | None = None
    directories: int = 0
    files: int = 0
    created: datetime | None = None
    modified: datetime | None = None

    @property
    def size_mb(self) -> int | None:
        return self.size_bytes // BYTES_PER_MB if self.size_bytes is not None else None


def record_to_dict(record: ImageMetadataRecord) -> dict[str, Any]:
    """Serialize a record with the API's field names and date display convention."""
    return {
        "index": record.index,
        "name": record.name,
        "description": record.description,
        "sizeMB": record.size_mb,
        "sizeBytes": record.size_bytes,
        "sizeIsApproximate": record.size_is_approximate,
        "isBootable": "yes" if record.is_bootable else "no",
        "architecture": record.architecture,
        "hal": record.hal,
        "version": record.version,
        "servicePackBuild": record.service_pack_build,
        "servicePackLevel": record.service_pack_level,
        "installation": record.installation,
        "productType": record.product_type,
        "productSuite": record.product_suite,
        "systemRoot": record.system_root,
        "edition": record.edition,
        "directories": record.directories,
        "files": record.files,
        "created": format_timestamp(record.created),
        "modified": format_timestamp(record.modified),
        "languages": record.languages,
    }


# ==== Session ====


class ResolutionSession:
    """
    Field resolution against one open container for the span of one request.
    Owns its cache; nothing here outlives the request that created it.
    """

    def __init__(self, reader: ContainerReaderPort, container_id: str) -> None:
        self.reader = reader
        self.container_id = container_id
        self.cache = PropertyCache()
        self.cache.bind(container_id)
        self.resolver = FieldResolver(reader)
        self._image_count: int | None = None
        self._boot_index: int | None = None

    def container_call(self, what: str, fn: Callable[[], T]) -> T:
        """Run a handle-level reader call; failures are container access errors."""
        try:
            return fn()
        except ContainerAccessError:
            raise
        except Exception as e:
            LOG.warning(
                "container.read_failed",
                extra={"extra": {"container": self.container_id, "call": what, "error": str(e)}},
            )
            raise ContainerAccessError(self.container_id, f"{what}: {e}") from e

    @property
    def image_count(self) -> int:
        if self._image_count is None:
            self._image_count = int(self.container_call("image_count", self.reader.get_image_count))
        return self._image_count

    @property
    def boot_index(self) -> int:
        if self._boot_index is None:
            self._boot_index = int(self.container_call("boot_index", self.reader.get_boot_index))
        return self._boot_index

    def field(self, index: int, name: str) -> ResolvedValue | None:
        spec = FIELD_SPECS[name]
        return self.cache.get_or_resolve(
            (index, name), lambda: self.resolver.resolve(index, spec)
        )


# ==== Service ====


class ImageMetadataService:
    """Builds normalized ImageMetadataRecords from an open container."""

    def __init__(
        self,
        opener: ContainerOpenerPort | None = None,
        *,
        approximate_size: bool = False,
    ) -> None:
        self.opener = opener
        self.approximate_size = approximate_size

    # --- small helpers ---

    @staticmethod
    def _text(session: ResolutionSession, index: int, name: str) -> str | None:
        value = session.field(index, name)
        return value if isinstance(value, str) else None

    @staticmethod
    def _count(session: ResolutionSession, index: int, name: str) -> int:
        value = session.field(index, name)
        return value if isinstance(value, int) else 0

    @staticmethod
    def _time(session: ResolutionSession, index: int, name: str) -> datetime | None:
        value = session.field(index, name)
        return value if isinstance(value, datetime) else None

    @staticmethod
    def _is_bootable(session: ResolutionSession, index: int) -> bool:
        flag = session.field(index, F.BOOTABLE)
        if isinstance(flag, str):
            return flag.strip().lower() == "yes"
        return session.boot_index == index

    def _size(self, session: ResolutionSession, index: int) -> tuple[int | None, bool]:
        size = session.field(index, F.TOTAL_BYTES)
        if isinstance(size, int):
            return size, False
        if not self.approximate_size:
            return None, False

        try:
            total = session.reader.get_total_bytes()
        except Exception as e:
            LOG.debug("size.total_bytes_failed", extra={"extra": {"error": str(e)}})
            total = None
        count = session.image_count
        if not total or count <= 0:
            return None, False
        approx = int(total) // count
        LOG.warning(
            "size.approximated",
            extra={
                "extra": {
                    "container": session.container_id,
                    "index": index,
                    "total_bytes": total,
                    "image_count": count,
                    "size_bytes": approx,
                }
            },
        )
        return approx, True

    def _check_index(self, session: ResolutionSession, index: int) -> None:
        count = session.image_count
        if index < 1 or index > count:
            raise InvalidImageIndexError(index, count)

    def _build(self, session: ResolutionSession, index: int) -> ImageMetadataRecord:
        name = session.container_call("image_name", lambda: session.reader.get_image_name(index))
        description = session.container_call(
            "image_description", lambda: session.reader.get_image_description(index)
        )
        size_bytes, approximate = self._size(session, index)
        level = session.field(index, F.SERVICE_PACK_LEVEL)

        record = ImageMetadataRecord(
            index=index,
            name=name or f"Image {index}",
            description=description,
            size_bytes=size_bytes,
            size_is_approximate=approximate,
            is_bootable=self._is_bootable(session, index),
            architecture=self._text(session, index, F.ARCHITECTURE),
            hal=self._text(session, index, F.HAL),
            version=self._text(session, index, F.VERSION),
            service_pack_build=self._text(session, index, F.SERVICE_PACK_BUILD),
            service_pack_level=level if isinstance(level, int) else 0,
            installation=self._text(session, index, F.INSTALLATION_TYPE),
            product_type=self._text(session, index, F.PRODUCT_TYPE),
            product_suite=self._text(session, index, F.PRODUCT_SUITE),
            system_root=self._text(session, index, F.SYSTEM_ROOT),
            edition=self._text(session, index, F.EDITION),
            languages=self._text(session, index, F.LANGUAGES),
            directories=self._count(session, index, F.DIR_COUNT),
            files=self._count(session, index, F.FILE_COUNT),
            created=self._time(session, index, F.CREATION_TIME),
            modified=self._time(session, index, F.MODIFICATION_TIME),
        )
        LOG.info(
            "image.resolved",
            extra={
                "extra": {
                    "container": session.container_id,
                    "index": index,
                    "cache_hits": session.cache.hits,
                    "cache_misses": session.cache.misses,
                }
            },
        )
        return record

    @staticmethod
    def _container_id(reader: ContainerReaderPort, container_id: str | None) -> str:
        return container_id or getattr(reader, "path", None) or f"reader:{id(reader)}"

    # --- primary entrypoints; every call starts a fresh session ---

    def resolve_image(
        self, reader: ContainerReaderPort, index: int, *, container_id: str | None = None
    ) -> ImageMetadataRecord:
        session = ResolutionSession(reader, self._container_id(reader, container_id))
        self._check_index(session, index)
        return self._build(session, index)

    def resolve_all_images(
        self, reader: ContainerReaderPort, *, container_id: str | None = None
    ) -> list[ImageMetadataRecord]:
        session = ResolutionSession(reader, self._container_id(reader, container_id))
        return [self._build(session, i) for i in range(1, session.image_count + 1)]

    # --- path based helpers: open, resolve, release ---

    def _require_opener(self) -> ContainerOpenerPort:
        if self.opener is None:
            raise RuntimeError("ImageMetadataService has no container opener configured")
        return self.opener

    def inspect_image(self, path: str, index: int) -> ImageMetadataRecord:
        with self._require_opener().open(path) as reader:
            return self.resolve_image(reader, index, container_id=path)

    def inspect_all_images(self, path: str) -> list[ImageMetadataRecord]:
        with self._require_opener().open(path) as reader:
            return self.resolve_all_images(reader, container_id=path)

    def xml_preview(self, path: str, index: int, limit: int = XML_PREVIEW_CHARS) -> dict[str, Any]:
        with self._require_opener().open(path) as reader:
            session = ResolutionSession(reader, path)
            self._check_index(session, index)
            xml = session.container_call("raw_xml", lambda: reader.get_raw_xml(index)) or ""
        return {
            "filePath": path,
            "imageIndex": index,
            "xmlDataLength": len(xml),
            "hasXmlData": bool(xml),
            "xmlPreview": xml[:limit] + "..." if len(xml) > limit else xml,
        }
