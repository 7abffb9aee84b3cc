# tests/test_image_service.py
from __future__ import annotations

import logging
from datetime import datetime

import pytest

from tests.fakes import BrokenReader, FakeContainerReader, FakeImage, FakeOpener
from wim_inspector.domain import field_specs as F
from wim_inspector.domain.errors import ContainerAccessError, InvalidImageIndexError
from wim_inspector.domain.image_service import (
    ImageMetadataService,
    ResolutionSession,
    record_to_dict,
)


def two_image_container() -> FakeContainerReader:
    return FakeContainerReader(
        [
            FakeImage(
                name="Windows 11 Pro",
                description="Windows 11 Pro",
                properties={"WINDOWS/ARCH": "9", "TOTALBYTES": "4294967296"},
            ),
            FakeImage(name="Windows PE", xml="<IMAGE><WINDOWS><ARCH>0</ARCH></WINDOWS></IMAGE>"),
        ],
        boot_index=1,
    )


def test_resolve_all_images_end_to_end():
    records = ImageMetadataService().resolve_all_images(two_image_container())
    assert [r.index for r in records] == [1, 2]

    first, second = records
    assert first.architecture == "x64"
    assert first.size_mb == 4096
    assert first.is_bootable is True

    assert second.architecture == "x86"
    assert second.is_bootable is False
    assert second.size_bytes is None and second.size_mb is None


def test_created_from_high_and_low_parts():
    reader = FakeContainerReader(
        [
            FakeImage(
                properties={
                    "CREATIONTIME/HIGHPART": "0x01D75679",
                    "CREATIONTIME/LOWPART": "0x1095C000",
                }
            )
        ]
    )
    record = ImageMetadataService().resolve_image(reader, 1)
    assert record.created == datetime(2021, 6, 1)
    assert record.created.year == 2021
    assert record.modified is None
    assert reader.property_calls[(1, "CREATIONTIME")] == 1


def test_malformed_file_count_defaults_to_zero():
    reader = FakeContainerReader([FakeImage(properties={"FILECOUNT": "not-a-number"})])
    record = ImageMetadataService().resolve_image(reader, 1)
    assert record.files == 0
    assert record.directories == 0


def test_sparse_image_has_absent_fields_not_defaults():
    record = ImageMetadataService().resolve_image(FakeContainerReader([FakeImage()]), 1)
    assert record.name == "Image 1"
    assert record.description is None
    assert record.architecture is None
    assert record.version is None
    assert record.edition is None
    assert record.languages is None
    assert record.size_bytes is None
    assert record.size_is_approximate is False
    assert record.service_pack_level == 0
    assert record.created is None and record.modified is None


def test_full_record():
    props = {
        "WINDOWS/ARCH": "12",
        "WINDOWS/HAL": "acpiapic",
        "WINDOWS/VERSION/MAJOR": "10",
        "WINDOWS/VERSION/MINOR": "0",
        "WINDOWS/VERSION/BUILD": "22621",
        "WINDOWS/VERSION/SPBUILD": "1702",
        "WINDOWS/VERSION/SPLEVEL": "2",
        "WINDOWS/INSTALLATIONTYPE": "Client",
        "WINDOWS/PRODUCTTYPE": "WinNT",
        "WINDOWS/PRODUCTSUITE": "Terminal Server",
        "WINDOWS/SYSTEMROOT": "WINDOWS",
        "WINDOWS/EDITIONID": "Professional",
        "WINDOWS/LANGUAGES/DEFAULT": "en-US",
        "DIRCOUNT": "20145",
        "FILECOUNT": "98765",
        "TOTALBYTES": "10485760",
        "LASTMODIFICATIONTIME": "0x01DC08B6:0x1A436C39",
        "WINDOWS/BOOTABLE": "YES",
    }
    record = ImageMetadataService().resolve_image(
        FakeContainerReader([FakeImage(name="Pro", description="desc", properties=props)]), 1
    )
    assert record.architecture == "ARM64"
    assert record.hal == "acpiapic"
    assert record.version == "10.0.22621"
    assert record.service_pack_build == "1702"
    assert record.service_pack_level == 2
    assert record.installation == "Client"
    assert record.product_type == "WinNT"
    assert record.product_suite == "Terminal Server"
    assert record.system_root == "WINDOWS"
    assert record.edition == "Professional"
    assert record.languages == "en-US (Default)"
    assert (record.directories, record.files) == (20145, 98765)
    assert record.size_mb == 10
    assert record.modified.year == 2025
    assert record.is_bootable is True

    data = record_to_dict(record)
    assert data["isBootable"] == "yes"
    assert data["modified"] == "08/08/2025 22:45:13"
    assert data["created"] == "Not specified"
    assert data["sizeMB"] == 10


def test_boot_property_overrides_boot_index():
    reader = FakeContainerReader([FakeImage(properties={"BOOTABLE": "No"})], boot_index=1)
    assert ImageMetadataService().resolve_image(reader, 1).is_bootable is False


def test_invalid_index():
    with pytest.raises(InvalidImageIndexError):
        ImageMetadataService().resolve_image(two_image_container(), 3)
    with pytest.raises(InvalidImageIndexError):
        ImageMetadataService().resolve_image(two_image_container(), 0)


def test_container_level_failure_is_typed():
    with pytest.raises(ContainerAccessError) as exc:
        ImageMetadataService().resolve_image(BrokenReader([FakeImage()]), 1, container_id="x.wim")
    assert exc.value.path == "x.wim"
    assert "I/O error" in exc.value.cause


def test_field_read_errors_do_not_fail_the_record():
    reader = FakeContainerReader(
        [FakeImage(properties={"ARCHITECTURE": "9"})], failing_paths={"WINDOWS/ARCH"}
    )
    assert ImageMetadataService().resolve_image(reader, 1).architecture == "x64"


def test_session_resolves_each_field_once():
    reader = two_image_container()
    session = ResolutionSession(reader, "a.wim")
    assert session.field(1, F.ARCHITECTURE) == "x64"
    assert session.field(1, F.ARCHITECTURE) == "x64"
    assert reader.property_calls[(1, "WINDOWS/ARCH")] == 1

    assert session.field(1, F.HAL) is None
    assert session.field(1, F.HAL) is None
    assert reader.property_calls[(1, "WINDOWS/HAL")] == 1


def test_every_request_starts_fresh():
    reader = two_image_container()
    service = ImageMetadataService()
    service.resolve_image(reader, 1)
    service.resolve_image(reader, 1)
    assert reader.property_calls[(1, "WINDOWS/ARCH")] == 2


def test_size_approximation_is_opt_in():
    reader = FakeContainerReader([FakeImage(), FakeImage()], total_bytes=8 * 1024 * 1024)
    assert ImageMetadataService().resolve_image(reader, 1).size_bytes is None


def test_size_approximation_is_flagged_and_logged(caplog):
    reader = FakeContainerReader([FakeImage(), FakeImage()], total_bytes=8 * 1024 * 1024)
    with caplog.at_level(logging.WARNING, logger="domain.image_service"):
        record = ImageMetadataService(approximate_size=True).resolve_image(reader, 2)
    assert record.size_bytes == 4 * 1024 * 1024
    assert record.size_mb == 4
    assert record.size_is_approximate is True
    assert record_to_dict(record)["sizeIsApproximate"] is True
    assert any(r.getMessage() == "size.approximated" for r in caplog.records)


def test_inspect_opens_and_releases_container():
    opener = FakeOpener({"/data/install.wim": two_image_container()})
    service = ImageMetadataService(opener)
    records = service.inspect_all_images("/data/install.wim")
    assert len(records) == 2
    assert opener.opened == opener.closed == ["/data/install.wim"]


def test_inspect_missing_container():
    with pytest.raises(ContainerAccessError):
        ImageMetadataService(FakeOpener({})).inspect_image("/nope.wim", 1)


def test_xml_preview():
    opener = FakeOpener({"a.wim": two_image_container()})
    preview = ImageMetadataService(opener).xml_preview("a.wim", 2, limit=10)
    assert preview["hasXmlData"] is True
    assert preview["xmlPreview"] == "<IMAGE><WI..."
    assert preview["xmlDataLength"] > 10
