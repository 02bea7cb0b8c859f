"""
Tests for the operator and client scripts
"""
import uuid
from unittest.mock import patch

import pytest
from sqlmodel import Session

from api.files.index import MetadataIndex
from api.files.services import FileService, find_orphaned_blobs, sweep_orphaned_blobs
from core import container
from core.exceptions import StorageError
from core.storage import LocalBlobStore
from scripts import container_tool, sweep_orphans


@pytest.fixture(name="populated")
def populated_fixture(session: Session, blob_store: LocalBlobStore, alice, bob):
    """Two indexed files and two orphaned blobs"""
    service = FileService(MetadataIndex(session), blob_store)
    kept = [
        service.upload(alice.id, "a.txt", "text/plain", b"a"),
        service.upload(bob.id, "b.txt", "text/plain", b"b"),
    ]
    orphans = sorted([(str(alice.id), str(uuid.uuid4())), (str(bob.id), str(uuid.uuid4()))])
    for owner_id, blob_id in orphans:
        blob_store.put(owner_id, blob_id, b"orphan")
    return kept, orphans


class TestOrphanSweep:
    """Tests for finding and deleting unreferenced blobs"""

    def test_find_orphans(self, session: Session, blob_store: LocalBlobStore, populated):
        _, orphans = populated
        found = find_orphaned_blobs(MetadataIndex(session), blob_store)
        assert sorted(found) == orphans

    def test_sweep_deletes_only_orphans(
        self, session: Session, blob_store: LocalBlobStore, populated
    ):
        kept, _ = populated
        report = sweep_orphaned_blobs(MetadataIndex(session), blob_store)
        assert report.deleted == 2
        assert report.errors == 0
        assert find_orphaned_blobs(MetadataIndex(session), blob_store) == []
        for record in kept:
            assert blob_store.get(record.owner_id, record.id) in (b"a", b"b")

    def test_dry_run_deletes_nothing(
        self, session: Session, blob_store: LocalBlobStore, populated
    ):
        _, orphans = populated
        report = sweep_orphaned_blobs(MetadataIndex(session), blob_store, dry_run=True)
        assert sorted(report.orphans) == orphans
        assert report.deleted == 0
        assert sorted(find_orphaned_blobs(MetadataIndex(session), blob_store)) == orphans

    def test_sweep_counts_errors(
        self, session: Session, blob_store: LocalBlobStore, populated
    ):
        with patch.object(LocalBlobStore, "delete", side_effect=StorageError("io")):
            report = sweep_orphaned_blobs(MetadataIndex(session), blob_store)
        assert report.deleted == 0
        assert report.errors == 2

    def test_skips_foreign_partitions(self, session: Session, blob_store: LocalBlobStore):
        blob_store.put("not-a-uuid", "blob", b"x")
        assert find_orphaned_blobs(MetadataIndex(session), blob_store) == []

    def test_main(self, session: Session, blob_store: LocalBlobStore, populated):
        """The script sweeps with --dry-run first, then for real"""
        with patch("scripts.sweep_orphans.get_session", return_value=iter([session])), \
             patch("scripts.sweep_orphans.get_blob_store", return_value=blob_store):
            assert sweep_orphans.main(["--dry-run"]) == 0
        assert len(find_orphaned_blobs(MetadataIndex(session), blob_store)) == 2

        with patch("scripts.sweep_orphans.get_session", return_value=iter([session])), \
             patch("scripts.sweep_orphans.get_blob_store", return_value=blob_store):
            assert sweep_orphans.main([]) == 0
        assert find_orphaned_blobs(MetadataIndex(session), blob_store) == []


class TestContainerTool:
    """Tests for the client side encrypt/decrypt tool"""

    def test_encrypt_then_decrypt(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TRUSTY_TEST_PASSWORD", "hunter22")
        source = tmp_path / "notes.txt"
        source.write_bytes(b"meeting notes")
        sealed = tmp_path / "notes.txt.enc"
        restored = tmp_path / "restored.txt"

        assert container_tool.main(
            ["encrypt", str(source), str(sealed), "--password-env", "TRUSTY_TEST_PASSWORD"]
        ) == 0
        assert sealed.stat().st_size == 16 + 12 + len(b"meeting notes") + 16
        assert container.decode(sealed.read_bytes(), "hunter22") == b"meeting notes"

        assert container_tool.main(
            ["decrypt", str(sealed), str(restored), "--password-env", "TRUSTY_TEST_PASSWORD"]
        ) == 0
        assert restored.read_bytes() == b"meeting notes"

    def test_wrong_password(self, tmp_path, monkeypatch):
        sealed = tmp_path / "a.enc"
        sealed.write_bytes(container.encode(b"secret", "right"))
        monkeypatch.setenv("TRUSTY_TEST_PASSWORD", "wrong")

        result = container_tool.main(
            ["decrypt", str(sealed), str(tmp_path / "a.txt"), "--password-env", "TRUSTY_TEST_PASSWORD"]
        )
        assert result == 1
        assert not (tmp_path / "a.txt").exists()

    def test_malformed_container(self, tmp_path, monkeypatch):
        sealed = tmp_path / "short.enc"
        sealed.write_bytes(b"too short")
        monkeypatch.setenv("TRUSTY_TEST_PASSWORD", "pw")

        result = container_tool.main(
            ["decrypt", str(sealed), str(tmp_path / "out"), "--password-env", "TRUSTY_TEST_PASSWORD"]
        )
        assert result == 1

    def test_prompts_for_password(self, tmp_path):
        source = tmp_path / "plain.txt"
        source.write_bytes(b"typed")
        sealed = tmp_path / "plain.enc"

        with patch("scripts.container_tool.getpass.getpass", return_value="typed-pw") as prompt:
            assert container_tool.main(["encrypt", str(source), str(sealed)]) == 0
        # Encrypting asks twice to confirm
        assert prompt.call_count == 2
        assert container.decode(sealed.read_bytes(), "typed-pw") == b"typed"

    def test_missing_password_env(self, tmp_path, monkeypatch):
        source = tmp_path / "plain.txt"
        source.write_bytes(b"x")
        monkeypatch.delenv("TRUSTY_UNSET_PASSWORD", raising=False)

        with pytest.raises(SystemExit):
            container_tool.main(
                ["encrypt", str(source), str(tmp_path / "out"), "--password-env", "TRUSTY_UNSET_PASSWORD"]
            )
