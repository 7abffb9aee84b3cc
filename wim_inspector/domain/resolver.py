# /wim_inspector/domain/resolver.py
from __future__ import annotations

import logging
from collections.abc import Sequence

from wim_inspector.domain.field_specs import FieldResolutionSpec, ResolvedValue
from wim_inspector.domain.xml_metadata import XmlMetadata, extract_xml_metadata
from wim_inspector.ports.container_reader import ContainerReaderPort

LOG = logging.getLogger("domain.resolver")


def read_property(reader: ContainerReaderPort, index: int, path: str) -> str | None:
    """One property lookup; blank values and reader errors count as absent."""
    try:
        value = reader.get_property(index, path)
    except Exception as e:
        LOG.debug(
            "property.read_failed",
            extra={"extra": {"index": index, "path": path, "error": str(e)}},
        )
        return None
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def resolve_paths(
    reader: ContainerReaderPort, index: int, paths: Sequence[str]
) -> str | None:
    """Value of the first path, in order, that is present and non-blank."""
    for path in paths:
        value = read_property(reader, index, path)
        if value is not None:
            LOG.debug(
                "property.resolved",
                extra={"extra": {"index": index, "path": path, "value": value}},
            )
            return value
    return None


class FieldResolver:
    """
    Applies a FieldResolutionSpec against one open container:
    direct paths, then the composition rule, then the image XML, then
    normalize/decode. The XML blob is fetched at most once per image.
    """

    def __init__(self, reader: ContainerReaderPort) -> None:
        self.reader = reader
        self._xml: dict[int, XmlMetadata] = {}

    def xml_metadata(self, index: int) -> XmlMetadata:
        if index not in self._xml:
            try:
                blob = self.reader.get_raw_xml(index)
            except Exception as e:
                LOG.debug("xml.read_failed", extra={"extra": {"index": index, "error": str(e)}})
                blob = None
            self._xml[index] = extract_xml_metadata(blob)
        return self._xml[index]

    def _raw(self, index: int, spec: FieldResolutionSpec) -> str | None:
        value = resolve_paths(self.reader, index, spec.paths)
        if value is None and spec.compose is not None:
            value = spec.compose(lambda path: read_property(self.reader, index, path))
        if value is None and spec.xml_field is not None:
            value = self.xml_metadata(index).get(spec.xml_field)
        return value

    def resolve(self, index: int, spec: FieldResolutionSpec) -> ResolvedValue | None:
        raw = self._raw(index, spec)
        if raw is None:
            LOG.debug("field.absent", extra={"extra": {"index": index, "field": spec.name}})
            return None

        if spec.normalize is not None:
            try:
                normalized = spec.normalize(raw)
            except Exception as e:
                LOG.debug(
                    "field.normalize_failed",
                    extra={"extra": {"field": spec.name, "raw": raw, "error": str(e)}},
                )
                normalized = None
            raw = normalized if normalized is not None else raw

        if spec.decode is None:
            return raw
        try:
            decoded = spec.decode(raw)
        except Exception as e:
            LOG.debug(
                "field.decode_failed",
                extra={"extra": {"field": spec.name, "raw": raw, "error": str(e)}},
            )
            return None
        if decoded is None:
            LOG.debug("field.undecodable", extra={"extra": {"field": spec.name, "raw": raw}})
        return decoded
