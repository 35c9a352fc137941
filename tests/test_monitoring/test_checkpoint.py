"""Tests for versioned checkpoints."""

from typing import ClassVar

from cragsync.monitoring.checkpoint import KayaSyncCheckpoint


class TestKayaSyncCheckpoint:
    """Tests for checkpoint serialization and version checks."""

    def test_fresh_checkpoint_starts_at_zero(self):
        checkpoint = KayaSyncCheckpoint()
        assert checkpoint.version == KayaSyncCheckpoint.VERSION
        assert checkpoint.next_index == 0

    def test_metadata_includes_version(self):
        data = KayaSyncCheckpoint(last_completed_index=1).to_metadata()
        assert data["version"] == 1
        assert data["last_completed_index"] == 1

    def test_from_metadata_none_or_empty(self):
        """Should return None when nothing was stored."""
        assert KayaSyncCheckpoint.from_metadata(None) is None
        assert KayaSyncCheckpoint.from_metadata({}) is None

    def test_from_metadata_without_version_is_rejected(self):
        """Untyped legacy checkpoints are not trusted."""
        assert KayaSyncCheckpoint.from_metadata({"last_completed_index": 3}) is None

    def test_newer_version_is_rejected(self):
        class KayaSyncCheckpointV2(KayaSyncCheckpoint):
            VERSION: ClassVar[int] = 2

        data = KayaSyncCheckpointV2(last_completed_index=5).to_metadata()

        assert KayaSyncCheckpoint.from_metadata(data) is None
        assert KayaSyncCheckpointV2.from_metadata(data).last_completed_index == 5

    def test_invalid_payload_is_rejected(self):
        data = {"version": 1, "last_completed_index": "not-a-number"}
        assert KayaSyncCheckpoint.from_metadata(data) is None

    def test_unknown_fields_are_ignored(self):
        data = {"version": 1, "last_completed_index": 2, "legacy_field": "x"}
        checkpoint = KayaSyncCheckpoint.from_metadata(data)
        assert checkpoint.next_index == 3
