"""
Unit Tests for the savestate save pipeline.

Tests cover:
- Dirty check and dirty flag handling
- Framed vs raw output
- Backup rotation before write
- Failure reporting and leaving previous files intact
- Debug export, create_backup and delete_all_saves
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from savestate.errors import ErrorCode, SaveFailedError
from savestate.frame import validate_frame
from tests.fakes import FailingSerializer, NoteSavestate


class TestSaveBasics:
    def test_none_savestate_raises(self, make_streamer):
        with pytest.raises(ValueError):
            make_streamer().save(None)

    def test_clean_savestate_is_skipped(self, make_streamer, save_dir, serializer):
        streamer = make_streamer(backup_count=2, debug_mode=True)
        state = NoteSavestate(note="data", dirty=False)

        assert streamer.save(state) is False

        assert list(save_dir.iterdir()) == []
        assert serializer.serialize_calls == 0

    def test_dirty_savestate_is_written_and_cleaned(self, make_streamer):
        streamer = make_streamer()
        state = NoteSavestate(note="data", dirty=True)

        assert streamer.save(state) is True

        assert streamer.file_path.exists()
        assert state.dirty is False

    def test_second_save_of_same_state_is_skipped(self, make_streamer):
        streamer = make_streamer()
        state = NoteSavestate(note="data")
        streamer.save(state)
        before = streamer.file_path.stat().st_mtime_ns

        assert streamer.save(state) is False
        assert streamer.file_path.stat().st_mtime_ns == before

    def test_with_validation_writes_header(self, make_streamer):
        streamer = make_streamer()
        streamer.save(NoteSavestate(version=3, note="data"))

        data = streamer.file_path.read_bytes()
        result = validate_frame(data)

        assert data[:4] == b"SAVE"
        assert result.ok
        assert result.version == 3

    def test_without_validation_writes_raw_payload(self, make_streamer, serializer):
        streamer = make_streamer(validate_files=False)
        state = NoteSavestate(note="data")
        expected = serializer.serialize(state)

        streamer.save(state)

        assert streamer.file_path.read_bytes() == expected
        assert streamer.load().note == "data"

    def test_round_trip(self, make_streamer):
        streamer = make_streamer()
        streamer.save(NoteSavestate(version=2, note="roundtrip_data"))

        loaded = streamer.load()

        assert loaded.note == "roundtrip_data"
        assert loaded.version == 2

    def test_no_temp_files_left_behind(self, make_streamer, save_dir):
        streamer = make_streamer()
        streamer.save(NoteSavestate(note="x"))

        assert sorted(p.name for p in save_dir.iterdir()) == ["savestate.sav"]


class TestSaveBackups:
    def test_first_save_creates_no_backup(self, make_streamer):
        streamer = make_streamer(backup_count=2)

        streamer.save(NoteSavestate(note="first"))

        assert not streamer.backup_path(0).exists()

    def test_slot_zero_holds_previous_main(self, make_streamer, serializer):
        streamer = make_streamer(backup_count=2)
        streamer.save(NoteSavestate(note="first"))
        first_bytes = streamer.file_path.read_bytes()

        streamer.save(NoteSavestate(note="second"))

        assert streamer.backup_path(0).read_bytes() == first_bytes
        assert streamer.load().note == "second"

    def test_rotation_keeps_backup_count(self, make_streamer, save_dir):
        streamer = make_streamer(backup_count=3)

        for i in range(5):
            streamer.save(NoteSavestate(note=f"save_{i}"))

        backups = sorted(p.name for p in save_dir.glob("savestate.backup*.sav"))
        assert backups == [
            "savestate.backup0.sav",
            "savestate.backup1.sav",
            "savestate.backup2.sav",
        ]
        assert not streamer.backup_path(3).exists()

    def test_rotation_failure_does_not_block_save(self, make_streamer):
        streamer = make_streamer(backup_count=2)
        streamer.save(NoteSavestate(note="first"))
        state = NoteSavestate(note="second")

        with patch("savestate.backups.shutil.copyfile", side_effect=OSError("no space")):
            assert streamer.save(state) is True

        assert state.dirty is False
        assert streamer.load().note == "second"


class TestSaveFailures:
    def test_serialize_failure_raises_and_keeps_dirty(self, make_streamer):
        streamer = make_streamer(serializer=FailingSerializer())
        state = NoteSavestate(note="data")

        with pytest.raises(SaveFailedError) as exc_info:
            streamer.save(state)

        assert exc_info.value.code == ErrorCode.E201_SERIALIZE_FAILED
        assert state.dirty is True
        assert not streamer.file_path.exists()

    def test_write_failure_keeps_previous_file(self, make_streamer):
        streamer = make_streamer()
        streamer.save(NoteSavestate(note="good"))
        previous = streamer.file_path.read_bytes()
        state = NoteSavestate(note="new")

        with patch("savestate.storage.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(SaveFailedError) as exc_info:
                streamer.save(state)

        assert exc_info.value.code == ErrorCode.E202_WRITE_FAILED
        assert isinstance(exc_info.value.__cause__, OSError)
        assert state.dirty is True
        assert streamer.file_path.read_bytes() == previous
        assert not streamer.file_path.with_name("savestate.sav.tmp").exists()

    @pytest.mark.parametrize("version", [2**31, 2**40])
    def test_version_outside_frame_range_raises(self, make_streamer, version):
        streamer = make_streamer(backup_count=2)
        streamer.save(NoteSavestate(note="good"))
        previous = streamer.file_path.read_bytes()
        state = NoteSavestate(version=version, note="huge")

        with pytest.raises(SaveFailedError) as exc_info:
            streamer.save(state)

        assert exc_info.value.code == ErrorCode.E203_FRAME_FAILED
        assert exc_info.value.error_details.details["version"] == version
        assert state.dirty is True
        assert streamer.file_path.read_bytes() == previous
        assert not streamer.backup_path(0).exists()

    def test_failure_is_logged_with_error_code(self, make_streamer, caplog):
        streamer = make_streamer(serializer=FailingSerializer())

        with caplog.at_level("ERROR", logger="savestate.streamer"):
            with pytest.raises(SaveFailedError):
                streamer.save(NoteSavestate(note="data"))

        assert "[E201]" in caplog.text
        assert caplog.records[-1].error_code == "E201"

    def test_retry_after_failure_succeeds(self, make_streamer):
        streamer = make_streamer()
        state = NoteSavestate(note="retry")

        with patch("savestate.streamer.write_file_atomic", side_effect=OSError("busy")):
            with pytest.raises(SaveFailedError):
                streamer.save(state)

        assert streamer.save(state) is True
        assert streamer.load().note == "retry"


class TestDebugExport:
    def test_debug_file_written(self, make_streamer):
        streamer = make_streamer(debug_mode=True)

        streamer.save(NoteSavestate(note="debug me"))

        assert "debug me" in streamer.debug_file_path.read_text(encoding="utf-8")

    def test_debug_file_not_written_by_default(self, make_streamer):
        streamer = make_streamer()

        streamer.save(NoteSavestate(note="x"))

        assert not streamer.debug_file_path.exists()

    def test_debug_export_failure_is_not_fatal(self, make_streamer, serializer):
        streamer = make_streamer(debug_mode=True)
        state = NoteSavestate(note="x")

        with patch.object(serializer, "to_debug_text", side_effect=UnicodeDecodeError("utf-8", b"", 0, 1, "bad")):
            assert streamer.save(state) is True

        assert state.dirty is False
        assert not streamer.debug_file_path.exists()


class TestUtilities:
    def test_create_backup_without_main_file(self, make_streamer):
        streamer = make_streamer(backup_count=2)

        assert streamer.create_backup() is False
        assert not streamer.backup_path(0).exists()

    def test_create_backup_copies_main(self, make_streamer):
        streamer = make_streamer(backup_count=2)
        streamer.save(NoteSavestate(note="data"))

        assert streamer.create_backup() is True

        assert streamer.backup_path(0).read_bytes() == streamer.file_path.read_bytes()

    def test_create_backup_disabled(self, make_streamer):
        streamer = make_streamer(backup_count=0)
        streamer.save(NoteSavestate(note="data"))

        assert streamer.create_backup() is False

    def test_delete_all_saves(self, make_streamer, save_dir):
        streamer = make_streamer(backup_count=3, debug_mode=True)
        for i in range(5):
            streamer.save(NoteSavestate(note=f"save_{i}"))

        removed = streamer.delete_all_saves()

        assert removed == 5  # main + 3 backups + debug export
        assert list(save_dir.iterdir()) == []

    def test_delete_all_saves_on_empty_folder(self, make_streamer):
        assert make_streamer(backup_count=2).delete_all_saves() == 0
