# /wim_inspector/domain/field_specs.py
"""
Static resolution table: for every logical image field, the property paths to
try (in priority order), an optional composition rule, an optional XML
fallback field and an optional normalize/decode step.
"""
from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from wim_inspector.domain.architecture import normalize_architecture
from wim_inspector.domain.timestamps import decode_timestamp, join_split_parts

# Looks up one property path, returning a non-blank value or None.
Lookup = Callable[[str], str | None]
ResolvedValue = str | int | datetime

_UNSIGNED = re.compile(r"^\d+$")


@dataclass(frozen=True, slots=True)
class FieldResolutionSpec:
    name: str
    paths: tuple[str, ...]
    compose: Callable[[Lookup], str | None] | None = None
    xml_field: str | None = None
    # normalize failures keep the raw value, decode failures make the field absent
    normalize: Callable[[str], str | None] | None = None
    decode: Callable[[str], ResolvedValue | None] | None = None


def compose_version(lookup: Lookup) -> str | None:
    major = lookup("WINDOWS/VERSION/MAJOR")
    minor = lookup("WINDOWS/VERSION/MINOR")
    if major is None or minor is None:
        return None
    build = lookup("WINDOWS/VERSION/BUILD")
    return f"{major}.{minor}.{build}" if build is not None else f"{major}.{minor}"


def compose_split_time(prefix: str) -> Callable[[Lookup], str | None]:
    def _compose(lookup: Lookup) -> str | None:
        return join_split_parts(lookup(f"{prefix}/HIGHPART"), lookup(f"{prefix}/LOWPART"))

    _compose.__name__ = f"compose_split_time_{prefix.lower()}"
    return _compose


def decode_unsigned(raw: str) -> int | None:
    text = raw.strip()
    return int(text) if _UNSIGNED.match(text) else None


def annotate_default_language(raw: str) -> str:
    return f"{raw} (Default)"


ARCHITECTURE = "ARCHITECTURE"
HAL = "HAL"
VERSION = "VERSION"
SERVICE_PACK_BUILD = "SERVICE_PACK_BUILD"
SERVICE_PACK_LEVEL = "SERVICE_PACK_LEVEL"
INSTALLATION_TYPE = "INSTALLATION_TYPE"
PRODUCT_TYPE = "PRODUCT_TYPE"
PRODUCT_SUITE = "PRODUCT_SUITE"
SYSTEM_ROOT = "SYSTEM_ROOT"
EDITION = "EDITION"
LANGUAGES = "LANGUAGES"
FILE_COUNT = "FILE_COUNT"
DIR_COUNT = "DIR_COUNT"
TOTAL_BYTES = "TOTAL_BYTES"
CREATION_TIME = "CREATION_TIME"
MODIFICATION_TIME = "MODIFICATION_TIME"
BOOTABLE = "BOOTABLE"


_SPECS = (
    FieldResolutionSpec(
        ARCHITECTURE,
        ("WINDOWS/ARCH", "ARCHITECTURE", "PROCESSORARCHITECTURE"),
        xml_field="arch",
        normalize=normalize_architecture,
    ),
    FieldResolutionSpec(HAL, ("WINDOWS/HAL", "HAL", "HALSYSTEM")),
    FieldResolutionSpec(
        VERSION,
        (
            "WINDOWS/VERSION",
            "WINDOWS/PRODUCTVERSION",
            "WINDOWS/DISPLAYVERSION",
            "VERSION",
            "DISPLAYVERSION",
            "PRODUCTVERSION",
        ),
        compose=compose_version,
        xml_field="product_version",
    ),
    FieldResolutionSpec(
        SERVICE_PACK_BUILD,
        (
            "WINDOWS/SERVICEPACK/BUILD",
            "WINDOWS/VERSION/SPBUILD",
            "SERVICEBUILD",
            "SERVICEPACKBUILD",
            "BUILD",
        ),
        xml_field="gdr_build",
    ),
    FieldResolutionSpec(
        SERVICE_PACK_LEVEL,
        ("WINDOWS/VERSION/SPLEVEL", "WINDOWS/SERVICEPACK/LEVEL", "SERVICEPACK_LEVEL"),
        decode=decode_unsigned,
    ),
    FieldResolutionSpec(
        INSTALLATION_TYPE,
        ("WINDOWS/INSTALLATIONTYPE", "INSTALLATIONTYPE", "INSTALLATION", "IMAGETYPE"),
        xml_field="installation_type",
    ),
    FieldResolutionSpec(
        PRODUCT_TYPE,
        ("WINDOWS/PRODUCTTYPE", "PRODUCTTYPE", "PRODUCT_TYPE", "OSTYPE"),
        xml_field="product_type",
    ),
    FieldResolutionSpec(
        PRODUCT_SUITE,
        ("WINDOWS/PRODUCTSUITE", "PRODUCTSUITE", "PRODUCT_SUITE", "SUITE"),
    ),
    FieldResolutionSpec(
        SYSTEM_ROOT,
        ("WINDOWS/SYSTEMROOT", "SYSTEMROOT", "WINDIR"),
        xml_field="system_root",
    ),
    FieldResolutionSpec(
        EDITION,
        (
            "WINDOWS/EDITION",
            "WINDOWS/EDITIONID",
            "WINDOWS/PRODUCTNAME",
            "EDITION",
            "EDITIONID",
            "PRODUCTNAME",
        ),
        xml_field="edition_id",
    ),
    FieldResolutionSpec(
        LANGUAGES,
        (
            "WINDOWS/LANGUAGES/DEFAULT",
            "WINDOWS/LANGUAGES/LANGUAGE",
            "WINDOWS/LANGUAGES",
            "LANGUAGES",
            "DEFAULT_LANGUAGE",
            "DEFAULTLANGUAGE",
            "LANGUAGE",
            "LOCALE",
        ),
        xml_field="language",
        normalize=annotate_default_language,
    ),
    FieldResolutionSpec(FILE_COUNT, ("FILECOUNT",), decode=decode_unsigned),
    FieldResolutionSpec(DIR_COUNT, ("DIRCOUNT",), decode=decode_unsigned),
    FieldResolutionSpec(TOTAL_BYTES, ("TOTALBYTES",), decode=decode_unsigned),
    FieldResolutionSpec(
        CREATION_TIME,
        ("CREATIONTIME", "CREATED"),
        compose=compose_split_time("CREATIONTIME"),
        decode=decode_timestamp,
    ),
    FieldResolutionSpec(
        MODIFICATION_TIME,
        ("LASTMODIFICATIONTIME", "MODIFIED"),
        compose=compose_split_time("LASTMODIFICATIONTIME"),
        decode=decode_timestamp,
    ),
    FieldResolutionSpec(BOOTABLE, ("WINDOWS/BOOTABLE", "BOOTABLE", "WIM_BOOTABLE")),
)

FIELD_SPECS: dict[str, FieldResolutionSpec] = {spec.name: spec for spec in _SPECS}
