# /wim_inspector/domain/xml_metadata.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, fields
from xml.sax.saxutils import unescape

from wim_inspector.domain.architecture import normalize_architecture

LOG = logging.getLogger("domain.xml_metadata")


@dataclass(slots=True, frozen=True)
class XmlMetadata:
    arch: str | None = None
    product_version: str | None = None
    edition_id: str | None = None
    installation_type: str | None = None
    product_type: str | None = None
    system_root: str | None = None
    gdr_build: str | None = None
    language: str | None = None

    def get(self, name: str) -> str | None:
        return getattr(self, name, None)


def _element(tag: str) -> re.Pattern[str]:
    return re.compile(rf"<{tag}(?:\s[^>]*)?>\s*([^<]+?)\s*</{tag}\s*>", re.IGNORECASE)


def _attribute(tag: str, attr: str) -> re.Pattern[str]:
    return re.compile(rf"<{tag}\b[^>]*?\s{attr}\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)


# field -> pattern; group(1) is the value
_PATTERNS: dict[str, re.Pattern[str]] = {
    "arch": _element("ARCH"),
    "product_version": _element("PRODUCTVERSION"),
    "edition_id": _element("EDITIONID"),
    "installation_type": _element("INSTALLATIONTYPE"),
    "product_type": _element("PRODUCTTYPE"),
    "system_root": _element("SYSTEMROOT"),
    "gdr_build": _attribute("SERVICINGDATA", "GDRORBUILD"),
    "language": _element("LANGUAGE"),
}


def _search(pattern: re.Pattern[str], blob: str) -> str | None:
    m = pattern.search(blob)
    if not m:
        return None
    value = unescape(m.group(1)).strip()
    return value or None


def extract_xml_metadata(blob: str | None) -> XmlMetadata:
    """
    Best-effort extraction of well-known tags from an image XML blob.
    Each tag is matched on its own; a failure only blanks that field.
    """
    if not isinstance(blob, str) or not blob:
        return XmlMetadata()

    found: dict[str, str | None] = {}
    for name in (f.name for f in fields(XmlMetadata)):
        try:
            found[name] = _search(_PATTERNS[name], blob)
        except Exception as e:
            LOG.debug("xml.tag_failed", extra={"extra": {"field": name, "error": str(e)}})
            found[name] = None

    found["arch"] = normalize_architecture(found["arch"])
    return XmlMetadata(**found)
