"""
SimTray Suite - tray export tests

Bundle shape, file naming, payload contents and rollback on failure.
"""

import io
import os
import re

import pytest
from PIL import Image

from simtray.errors import ExportIOError
from simtray.formats.dbpf import CompressionType, DBPFTypeID
from simtray.formats.proto.exchange import ExchangeItemType
from simtray.formats.tray import placeholder_png, read_tray_item
from simtray.save_editor import ExportRequest, HouseholdTrayExporter, SaveHouseholdReader
from simtray.save_editor.household_reader import REASON_MISSING_MEMBERS, REASON_NOT_HUMAN_LIKE
from simtray.save_editor.models import HouseholdView
from simtray.save_editor.tray_exporter import (
    THUMBNAILS_DISABLED_WARNING,
    expected_glyph_count,
    generate_instance_id,
    sanitize_file_name,
    validate_written_files,
)

from conftest import BROKEN_ID, GOTH_ID, PETS_ID, Resource, make_household, make_sim


FILE_NAME = re.compile(r"^0x[0-9A-F]{8}!0x[0-9A-F]{16}\.(trayitem|householdbinary|hhi|sgi)$")


def request_for(save_path, export_root, household_id=GOTH_ID, **kwargs):
    return ExportRequest(
        source_save_path=save_path,
        household_id=household_id,
        export_root=export_root,
        creator_name=kwargs.pop("creator_name", "Tester"),
        creator_id=kwargs.pop("creator_id", 42),
        **kwargs,
    )


def names_by_extension(result):
    by_ext = {}
    for path in result.written_files:
        by_ext.setdefault(os.path.splitext(path)[1], []).append(os.path.basename(path))
    return by_ext


def test_three_member_export_writes_seven_files(sample_save, export_root):
    result = HouseholdTrayExporter().export(request_for(sample_save, export_root))

    assert result.succeeded, result.error
    assert result.error is None
    assert result.warnings == []
    assert len(result.written_files) == 7
    assert sorted(os.listdir(result.export_directory)) == sorted(
        os.path.basename(p) for p in result.written_files
    )

    by_ext = names_by_extension(result)
    assert len(by_ext[".trayitem"]) == 1
    assert len(by_ext[".householdbinary"]) == 1
    assert len(by_ext[".hhi"]) == 2
    assert len(by_ext[".sgi"]) == 3


def test_file_names_share_instance_id(sample_save, export_root):
    result = HouseholdTrayExporter().export(request_for(sample_save, export_root))
    instance = result.instance_id_hex

    assert re.match(r"^0x[0-9A-F]{16}$", instance)
    assert int(instance, 16) != 0
    for path in result.written_files:
        name = os.path.basename(path)
        assert FILE_NAME.match(name)
        assert name.split("!")[1].startswith(instance)

    type_codes = sorted(os.path.basename(p).split("!")[0] for p in result.written_files)
    assert type_codes == [
        "0x00000001", "0x00000002", "0x00000010", "0x00000011",
        "0x00000013", "0x00000023", "0x00000033",
    ]


def test_thumbnails_disabled_writes_four_files_and_warns(sample_save, export_root):
    result = HouseholdTrayExporter().export(
        request_for(sample_save, export_root, generate_thumbnails=False)
    )

    assert result.succeeded
    assert len(result.written_files) == 4
    assert ".sgi" not in names_by_extension(result)
    assert result.warnings == [THUMBNAILS_DISABLED_WARNING]


def test_household_binary_is_source_record(sample_save, export_root):
    snapshot = SaveHouseholdReader().load(sample_save)
    result = HouseholdTrayExporter().export(request_for(sample_save, export_root))

    path = next(p for p in result.written_files if p.endswith(".householdbinary"))
    with open(path, 'rb') as f:
        assert f.read() == snapshot.raw_household(GOTH_ID).to_bytes()


def test_household_binary_keeps_unmodelled_fields(save_factory, export_root):
    household = make_household(0x77, "Keeper", [1])
    household.unknown_fields[30] = [b"\xf2\x01\x03abc"]    # field 30, "abc"
    path = save_factory(households=[household], sims=[make_sim(1, "K", "Eeper")])

    result = HouseholdTrayExporter().export(request_for(path, export_root, household_id=0x77))

    binary = next(p for p in result.written_files if p.endswith(".householdbinary"))
    with open(binary, 'rb') as f:
        data = f.read()
    assert data == household.to_bytes()
    assert data.endswith(b"\xf2\x01\x03abc")


def test_tray_item_metadata(sample_save, export_root):
    result = HouseholdTrayExporter().export(request_for(sample_save, export_root))

    path = next(p for p in result.written_files if p.endswith(".trayitem"))
    with open(path, 'rb') as f:
        raw = f.read()
    metadata = read_tray_item(path)

    assert int.from_bytes(raw[0:4], "little") == 1
    assert int.from_bytes(raw[4:8], "little") == len(raw) - 8
    assert metadata.id == int(result.instance_id_hex, 16)
    assert metadata.type == ExchangeItemType.EXCHANGE_HOUSEHOLD
    assert metadata.name == "Goth"
    assert metadata.description == "Family of the manor"
    assert metadata.creator_name == "Tester"
    assert metadata.creator_id == 42
    assert metadata.item_timestamp > 1600000000

    hh = metadata.metadata.hh_metadata
    assert hh.family_size == 3
    assert [(s.first_name, s.id) for s in hh.sim_data] == [
        ("Bella", 1), ("Mortimer", 2), ("Cassandra", 3),
    ]
    assert hh.sim_data[2].age == 8


def test_placeholders_are_1x1_png(sample_save, export_root):
    result = HouseholdTrayExporter().export(request_for(sample_save, export_root))

    for path in result.written_files:
        if path.endswith((".hhi", ".sgi")):
            with open(path, 'rb') as f:
                data = f.read()
            assert data == placeholder_png()
            with Image.open(io.BytesIO(data)) as image:
                assert image.format == "PNG"
                assert image.size == (1, 1)


def test_directory_name_and_collisions(sample_save, export_root):
    exporter = HouseholdTrayExporter()
    first = exporter.export(request_for(sample_save, export_root))
    second = exporter.export(request_for(sample_save, export_root))

    assert first.succeeded and second.succeeded
    assert first.export_directory != second.export_directory
    base = os.path.basename(first.export_directory)
    assert re.match(rf"^Goth_{GOTH_ID:X}_\d{{8}}_\d{{6}}$", base)
    assert first.instance_id_hex != second.instance_id_hex


def test_unique_directory_gets_numeric_suffix(export_root, monkeypatch):
    created = []
    real_mkdir = os.mkdir

    def fake_mkdir(path, *args, **kwargs):
        if not created:
            created.append(path)
            raise FileExistsError(path)
        created.append(path)
        return real_mkdir(path, *args, **kwargs)

    monkeypatch.setattr(os, "mkdir", fake_mkdir)
    directory = HouseholdTrayExporter.create_unique_export_directory(export_root, "Goth", 0x1F)

    assert directory == created[1]
    assert directory.endswith("_1")
    assert os.path.isdir(directory)


def test_unique_directory_gives_up(export_root, monkeypatch):
    def always_exists(path, *args, **kwargs):
        raise FileExistsError(path)

    monkeypatch.setattr(os, "mkdir", always_exists)
    with pytest.raises(ExportIOError, match="Unable to create a unique export directory"):
        HouseholdTrayExporter.create_unique_export_directory(export_root, "Goth", 1)


def test_missing_export_root_fails_without_creating_it(sample_save, tmp_path):
    root = tmp_path / "does-not-exist"
    result = HouseholdTrayExporter().export(request_for(sample_save, str(root)))

    assert not result.succeeded
    assert result.error == "Export root path does not exist."
    assert not root.exists()


def test_unknown_household(sample_save, export_root):
    result = HouseholdTrayExporter().export(request_for(sample_save, export_root, household_id=0xBAD))
    assert not result.succeeded
    assert result.error == "The requested household was not found in the source save."
    assert os.listdir(export_root) == []


@pytest.mark.parametrize("household_id, reason", [
    (BROKEN_ID, REASON_MISSING_MEMBERS),
    (PETS_ID, REASON_NOT_HUMAN_LIKE),
])
def test_blocked_household_reports_reason(sample_save, export_root, household_id, reason):
    result = HouseholdTrayExporter().export(request_for(sample_save, export_root, household_id=household_id))
    assert not result.succeeded
    assert result.error == reason
    assert os.listdir(export_root) == []


def test_missing_source_save(tmp_path, export_root):
    result = HouseholdTrayExporter().export(request_for(str(tmp_path / "gone.save"), export_root))
    assert not result.succeeded
    assert "not found" in result.error


def test_write_failure_rolls_back(sample_save, export_root, monkeypatch):
    calls = []

    def failing_write(path, data):
        calls.append(path)
        if len(calls) == 3:
            raise OSError("disk full")
        with open(path, 'xb') as f:
            f.write(data)

    monkeypatch.setattr(HouseholdTrayExporter, "write_file", staticmethod(failing_write))
    result = HouseholdTrayExporter().export(request_for(sample_save, export_root))

    assert not result.succeeded
    assert result.error == "disk full"
    assert os.listdir(export_root) == []


def test_validation_failure_leaves_no_trace(sample_save, export_root, monkeypatch):
    monkeypatch.setattr(HouseholdTrayExporter, "validate_bundle", lambda self, files, expected: False)
    result = HouseholdTrayExporter().export(request_for(sample_save, export_root))

    assert not result.succeeded
    assert result.error == "The exported tray bundle is incomplete."
    assert result.export_directory == ""
    assert os.listdir(export_root) == []


class TestValidateWrittenFiles:
    def make_files(self, directory, names):
        paths = []
        for name in names:
            path = os.path.join(directory, name)
            with open(path, 'wb') as f:
                f.write(b"x")
            paths.append(path)
        return paths

    def test_complete_bundle(self, tmp_path):
        paths = self.make_files(str(tmp_path), ["a.trayitem", "b.householdbinary", "c.hhi", "d.hhi", "e.sgi"])
        assert validate_written_files(paths, 1)

    def test_wrong_sgi_count(self, tmp_path):
        paths = self.make_files(str(tmp_path), ["a.trayitem", "b.householdbinary", "c.hhi", "d.hhi"])
        assert not validate_written_files(paths, 1)

    def test_missing_file_on_disk(self, tmp_path):
        paths = self.make_files(str(tmp_path), ["a.trayitem", "b.householdbinary", "c.hhi"])
        paths.append(os.path.join(str(tmp_path), "d.hhi"))
        assert not validate_written_files(paths, 0)

    def test_empty(self):
        assert not validate_written_files([], 0)


def test_eight_member_household_writes_eight_glyphs(save_factory, export_root):
    sims = [make_sim(i, f"S{i}", "Eight") for i in range(1, 9)]
    path = save_factory(households=[make_household(0x88, "Eight", list(range(1, 9)))], sims=sims)

    result = HouseholdTrayExporter().export(request_for(path, export_root, household_id=0x88))

    assert result.succeeded
    assert len(names_by_extension(result)[".sgi"]) == 8
    assert len(result.written_files) == 12


def test_expected_glyph_count_caps_at_eight():
    assert expected_glyph_count(HouseholdView(household_id=1, size=9), True) == 8
    assert expected_glyph_count(HouseholdView(household_id=1, size=3), True) == 3
    assert expected_glyph_count(HouseholdView(household_id=1, size=9), False) == 0


def test_malformed_save_record_is_a_failed_result(package_factory, export_root):
    # unknown length-delimited field whose length cannot fit in memory
    payload = bytes([0x9A, 0x06]) + b"\xff" * 9 + b"\x01"
    path = package_factory("Slot_00000004.save", [
        Resource(type=DBPFTypeID.SAVE_GAME_DATA, data=payload, compression=CompressionType.ZLIB),
    ])

    result = HouseholdTrayExporter().export(request_for(path, export_root, household_id=1))

    assert not result.succeeded
    assert "Unexpected end of stream" in result.error
    assert os.listdir(export_root) == []


def test_unexpected_error_is_a_failed_result(sample_save, export_root, monkeypatch):
    def broken_load(self, path):
        raise RuntimeError("boom")

    monkeypatch.setattr(SaveHouseholdReader, "load", broken_load)
    result = HouseholdTrayExporter().export(request_for(sample_save, export_root))

    assert not result.succeeded
    assert result.error == "boom"
    assert os.listdir(export_root) == []


@pytest.mark.parametrize("raw, expected", [
    ("Goth", "Goth"),
    ('A<b>:c"d/e\\f|g?h*i', "A_b__c_d_e_f_g_h_i"),
    ("tab\there", "tab_here"),
    ("   ", "Household"),
    ("", "Household"),
])
def test_sanitize_file_name(raw, expected):
    assert sanitize_file_name(raw) == expected


def test_instance_id_never_zero(monkeypatch):
    values = iter([0, 0, 5])
    monkeypatch.setattr("simtray.save_editor.tray_exporter.secrets.randbits", lambda bits: next(values))
    assert generate_instance_id() == 5
