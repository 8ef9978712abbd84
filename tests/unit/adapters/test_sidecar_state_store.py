"""Unit tests for SidecarStateStore."""

import json
import os
import stat
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from pgx.adapters.sidecar.state_store import (
    SidecarStateStore,
    credential_file_path,
    log_file_path,
    sidecar_path,
    state_file_path,
)
from pgx.domain.entities import EndpointRecord
from pgx.domain.exceptions import PersistenceFailedError

posix_only = pytest.mark.skipif(
    sys.platform == "win32", reason="POSIX permission bits"
)


@pytest.fixture
def record() -> EndpointRecord:
    return EndpointRecord(host="localhost", port=54321, credential="pw-123")


class TestSidecarPaths:
    """Tests for sidecar path derivation."""

    def test_files_are_siblings_of_data_dir(self, data_dir: Path):
        assert state_file_path(data_dir) == data_dir.parent / "pgdata.pgx-state.json"
        assert credential_file_path(data_dir) == data_dir.parent / "pgdata.pgx-password"
        assert log_file_path(data_dir) == data_dir.parent / "pgdata.pgx.log"

    def test_nameless_path_uses_fallback(self):
        assert sidecar_path(Path("/"), "x").name == "pgx-data.x"


class TestWriteAndRead:
    """Tests for endpoint record persistence."""

    def test_read_missing_returns_none(self, store: SidecarStateStore, data_dir: Path):
        assert store.read(data_dir) is None

    def test_write_then_read(
        self, store: SidecarStateStore, data_dir: Path, record: EndpointRecord
    ):
        store.write(data_dir, record)

        assert store.read(data_dir) == record

    def test_write_replaces_previous_record(
        self, store: SidecarStateStore, data_dir: Path, record: EndpointRecord
    ):
        store.write(data_dir, record)
        newer = EndpointRecord(host="127.0.0.1", port=6000, credential="other")

        store.write(data_dir, newer)

        assert store.read(data_dir) == newer

    def test_written_json_layout(
        self, store: SidecarStateStore, data_dir: Path, record: EndpointRecord
    ):
        store.write(data_dir, record)

        data = json.loads(state_file_path(data_dir).read_text())
        assert data == {"host": "localhost", "port": 54321, "credential": "pw-123"}

    def test_write_leaves_no_temp_files(
        self, store: SidecarStateStore, data_dir: Path, record: EndpointRecord
    ):
        store.write(data_dir, record)

        assert sorted(p.name for p in data_dir.parent.iterdir()) == [
            "pgdata.pgx-state.json"
        ]

    def test_write_does_not_create_data_dir(
        self, store: SidecarStateStore, data_dir: Path, record: EndpointRecord
    ):
        store.write(data_dir, record)

        assert not data_dir.exists()

    @posix_only
    def test_record_is_owner_only(
        self, store: SidecarStateStore, data_dir: Path, record: EndpointRecord
    ):
        store.write(data_dir, record)

        mode = stat.S_IMODE(os.stat(state_file_path(data_dir)).st_mode)
        assert mode == 0o600

    @pytest.mark.parametrize(
        "content",
        [
            '{"host": "localhost", "po',
            "",
            "[1, 2, 3]",
            '{"host": "localhost"}',
            '{"host": "", "port": 5432, "credential": "pw"}',
            '{"host": "localhost", "port": "5432", "credential": "pw"}',
            '{"host": "localhost", "port": 99999, "credential": "pw"}',
            '{"host": "localhost", "port": 5432, "credential": 123}',
            '{"host": 42, "port": 5432, "credential": "pw"}',
            '{"host": ["localhost"], "port": 5432, "credential": "pw"}',
        ],
    )
    def test_unparsable_record_is_absent(
        self, store: SidecarStateStore, data_dir: Path, content: str
    ):
        path = state_file_path(data_dir)
        path.parent.mkdir(parents=True)
        path.write_text(content)

        assert store.read(data_dir) is None

    def test_record_without_credential_uses_credential_file(
        self, store: SidecarStateStore, data_dir: Path
    ):
        path = state_file_path(data_dir)
        path.parent.mkdir(parents=True)
        path.write_text('{"host": "localhost", "port": 5432}')
        store.write_credential(data_dir, "from-file")

        assert store.read(data_dir) == EndpointRecord("localhost", 5432, "from-file")

    def test_record_without_any_credential_is_absent(
        self, store: SidecarStateStore, data_dir: Path
    ):
        path = state_file_path(data_dir)
        path.parent.mkdir(parents=True)
        path.write_text('{"host": "localhost", "port": 5432}')

        assert store.read(data_dir) is None

    def test_failed_replace_raises_persistence_error(
        self, store: SidecarStateStore, data_dir: Path, record: EndpointRecord
    ):
        with patch(
            "pgx.adapters.sidecar.state_store.os.replace",
            side_effect=OSError("No space left on device"),
        ):
            with pytest.raises(PersistenceFailedError) as exc_info:
                store.write(data_dir, record)

        assert "No space left on device" in exc_info.value.message
        assert exc_info.value.hint is not None
        assert list(data_dir.parent.iterdir()) == []

    def test_failed_replace_keeps_previous_record(
        self, store: SidecarStateStore, data_dir: Path, record: EndpointRecord
    ):
        store.write(data_dir, record)

        with patch(
            "pgx.adapters.sidecar.state_store.os.replace",
            side_effect=OSError("boom"),
        ):
            with pytest.raises(PersistenceFailedError):
                store.write(data_dir, EndpointRecord("other", 1, "x"))

        assert store.read(data_dir) == record


class TestCredentialFile:
    """Tests for the credential file."""

    def test_read_missing_returns_none(self, store: SidecarStateStore, data_dir: Path):
        assert store.read_credential(data_dir) is None

    def test_write_then_read(self, store: SidecarStateStore, data_dir: Path):
        store.write_credential(data_dir, "s3cret")

        assert store.read_credential(data_dir) == "s3cret"
        assert credential_file_path(data_dir).read_text() == "s3cret\n"

    def test_surrounding_whitespace_is_stripped(
        self, store: SidecarStateStore, data_dir: Path
    ):
        path = credential_file_path(data_dir)
        path.parent.mkdir(parents=True)
        path.write_text("  s3cret \n\n")

        assert store.read_credential(data_dir) == "s3cret"

    def test_empty_file_is_absent(self, store: SidecarStateStore, data_dir: Path):
        path = credential_file_path(data_dir)
        path.parent.mkdir(parents=True)
        path.write_text("\n")

        assert store.read_credential(data_dir) is None

    @posix_only
    def test_file_is_owner_only(self, store: SidecarStateStore, data_dir: Path):
        store.write_credential(data_dir, "s3cret")

        mode = stat.S_IMODE(os.stat(credential_file_path(data_dir)).st_mode)
        assert mode == 0o600

    def test_failed_write_raises_persistence_error(
        self, store: SidecarStateStore, data_dir: Path
    ):
        with patch(
            "pgx.adapters.sidecar.state_store.os.replace",
            side_effect=PermissionError("denied"),
        ):
            with pytest.raises(PersistenceFailedError, match="password file"):
                store.write_credential(data_dir, "s3cret")
