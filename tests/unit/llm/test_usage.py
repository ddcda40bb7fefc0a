"""Unit tests for usage metadata and the audit log."""

import json

import pytest

from epubtrans.core.llm.usage import MAX_PROMPT_EXAMPLES, UsageMetadata, UsageTracker


class TestUsageMetadata:
    """In-memory aggregation."""

    def test_record(self):
        metadata = UsageMetadata()
        metadata.record("m1", "first prompt", 10, 5)
        metadata.record("m1", "second prompt", 3, 2)
        metadata.record("m2", "x" * 500, 1, 1)

        assert metadata.total_calls == 3
        assert metadata.model_usage == {"m1": 2, "m2": 1}
        assert metadata.total_tokens == 22
        assert len(metadata.prompt_examples[2]) == 100
        assert metadata.last_used is not None

    def test_examples_capped(self):
        metadata = UsageMetadata()
        for i in range(MAX_PROMPT_EXAMPLES + 3):
            metadata.record("m", f"prompt {i}", 0, 0)
        assert len(metadata.prompt_examples) == MAX_PROMPT_EXAMPLES

    def test_dict_round_trip(self):
        metadata = UsageMetadata()
        metadata.record("m", "p", 4, 6)
        again = UsageMetadata.from_dict(metadata.to_dict())
        assert again == metadata
        assert metadata.to_dict()["total_tokens"] == 10


class TestUsageTracker:
    """Persistence under the state directory."""

    @pytest.mark.asyncio
    async def test_save_and_load(self, tmp_path):
        tracker = UsageTracker(str(tmp_path / "state"))
        await tracker.record_success("m", "hello", 5, 7)

        data = json.loads(tracker.metadata_path.read_text(encoding="utf-8"))
        assert data["total_calls"] == 1

        reloaded = UsageTracker(str(tmp_path / "state"))
        await reloaded.load()
        assert reloaded.metadata.output_tokens == 7

    @pytest.mark.asyncio
    async def test_corrupt_metadata_starts_fresh(self, tmp_path):
        (tmp_path / "translator_metadata.json").write_text("{not json", encoding="utf-8")
        tracker = UsageTracker(str(tmp_path))
        await tracker.load()
        assert tracker.metadata.total_calls == 0

    @pytest.mark.asyncio
    async def test_audit_appends_json_lines(self, tmp_path):
        tracker = UsageTracker(str(tmp_path))
        await tracker.audit("m", "sys", "content", response="réponse")
        await tracker.audit("m", "sys", "content", error="boom")

        lines = tracker.audit_log_path.read_text(encoding="utf-8").splitlines()
        entries = [json.loads(line) for line in lines]
        assert entries[0]["response"] == "réponse"
        assert entries[1]["error"] == "boom"
        assert "response" not in entries[1]

    @pytest.mark.asyncio
    async def test_unwritable_state_dir_is_not_fatal(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("", encoding="utf-8")
        tracker = UsageTracker(str(blocker / "state"))

        await tracker.record_success("m", "p", 1, 1)
        await tracker.audit("m", "sys", "content", response="ok")
        assert tracker.metadata.total_calls == 1

    @pytest.mark.asyncio
    async def test_in_memory(self):
        tracker = UsageTracker()
        await tracker.load()
        await tracker.record_success("m", "p", 1, 1)
        assert tracker.metadata_path is None
