# /wim_inspector/adapters/wimlib/wimlib_reader.py
from __future__ import annotations

import logging
import os
import re
import subprocess
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import xmltodict
from xml.parsers.expat import ExpatError

from wim_inspector.config import settings
from wim_inspector.domain.errors import ContainerAccessError

LOG = logging.getLogger("adapter.wimlib")

_BOOT_INDEX = re.compile(r"^\s*Boot Index\s*[:=]\s*(\d+)\s*$", re.MULTILINE)
_PATH_PART = re.compile(r"^([^\[\]]+)(?:\[(\d+)\])?$")


def _decode_xml_bytes(data: bytes) -> str:
    # wimlib writes the XML as UTF-16LE with a BOM
    if data.startswith((b"\xff\xfe", b"\xfe\xff")):
        return data.decode("utf-16")
    if len(data) > 1 and data[1:2] == b"\x00":
        return data.decode("utf-16-le")
    return data.decode("utf-8-sig")


def _as_list(node: Any) -> list[Any]:
    if node is None:
        return []
    return node if isinstance(node, list) else [node]


class WimXmlContainer:
    """
    Read-only view over the XML metadata of a WIM file.

    get_property() walks '/'-delimited element names below the IMAGE with the
    requested INDEX, the same addressing wimlib uses for image properties.
    A trailing "[n]" selects the n-th (1-based) repeated element.
    """

    def __init__(self, xml_text: str, *, boot_index: int = 0, path: str | None = None) -> None:
        self.path = path
        self._boot_index = boot_index
        doc = xmltodict.parse(xml_text)
        self._wim: dict[str, Any] = doc.get("WIM") or {}
        self._images: dict[int, dict[str, Any]] = {}
        for node in _as_list(self._wim.get("IMAGE")):
            try:
                self._images[int(node.get("@INDEX"))] = node
            except (AttributeError, TypeError, ValueError):
                LOG.warning("wim.image_without_index", extra={"extra": {"path": path}})

    def _image(self, index: int) -> dict[str, Any] | None:
        return self._images.get(index)

    def close(self) -> None:
        self._images.clear()

    def get_image_count(self) -> int:
        return len(self._images)

    def get_boot_index(self) -> int:
        return self._boot_index

    def get_image_name(self, index: int) -> str | None:
        return self.get_property(index, "NAME")

    def get_image_description(self, index: int) -> str | None:
        return self.get_property(index, "DESCRIPTION")

    def get_property(self, index: int, path: str) -> str | None:
        node: Any = self._image(index)
        for part in path.split("/"):
            m = _PATH_PART.match(part)
            if m is None or not isinstance(node, dict):
                return None
            items = _as_list(node.get(m.group(1)))
            pos = int(m.group(2)) if m.group(2) else 1
            if pos < 1 or pos > len(items):
                return None
            node = items[pos - 1]
        if isinstance(node, dict):
            node = node.get("#text")
        return node if isinstance(node, str) else None

    def get_raw_xml(self, index: int) -> str | None:
        node = self._image(index)
        if node is None:
            return None
        return xmltodict.unparse({"IMAGE": node}, full_document=False, pretty=True)

    def get_total_bytes(self) -> int | None:
        raw = self._wim.get("TOTALBYTES")
        try:
            return int(raw) if raw is not None else None
        except (TypeError, ValueError):
            return None


class WimlibCliOpener:
    """Opens WIM/ESD files through the wimlib-imagex command line tool."""

    def __init__(self, binary: str | None = None, timeout: float | None = None) -> None:
        self.binary = binary or settings.WIMLIB_IMAGEX
        self.timeout = timeout if timeout is not None else settings.WIMLIB_TIMEOUT_SECONDS

    def _run(self, path: str, *args: str) -> str:
        cmd = [self.binary, "info", path, *args]
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, errors="replace", timeout=self.timeout
            )
        except FileNotFoundError as e:
            raise ContainerAccessError(path, f"{self.binary} not found") from e
        except subprocess.TimeoutExpired as e:
            raise ContainerAccessError(path, f"{self.binary} timed out after {self.timeout}s") from e
        if result.returncode != 0:
            LOG.warning(
                "wimlib.info_failed",
                extra={"extra": {"path": path, "rc": result.returncode, "stderr": result.stderr}},
            )
            raise ContainerAccessError(path, result.stderr.strip() or f"exit code {result.returncode}")
        return result.stdout

    def read_boot_index(self, path: str) -> int:
        m = _BOOT_INDEX.search(self._run(path))
        return int(m.group(1)) if m else 0

    def read_xml(self, path: str) -> str:
        fd, xml_path = tempfile.mkstemp(suffix=".xml")
        os.close(fd)
        try:
            self._run(path, f"--extract-xml={xml_path}")
            with open(xml_path, "rb") as f:
                return _decode_xml_bytes(f.read())
        finally:
            os.unlink(xml_path)

    @contextmanager
    def open(self, path: str) -> Iterator[WimXmlContainer]:
        if not os.path.isfile(path):
            raise ContainerAccessError(path, "file not found")
        xml_text = self.read_xml(path)
        try:
            container = WimXmlContainer(xml_text, boot_index=self.read_boot_index(path), path=path)
        except ExpatError as e:
            raise ContainerAccessError(path, f"invalid XML metadata: {e}") from e
        LOG.info(
            "wimlib.opened",
            extra={"extra": {"path": path, "images": container.get_image_count()}},
        )
        try:
            yield container
        finally:
            container.close()
