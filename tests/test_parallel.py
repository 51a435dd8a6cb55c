"""Tests for parallel batch import."""

import json

import pytest

from tacboard.infra.parallel import MAX_WORKERS, BatchImporter, BatchProgress, import_file


@pytest.fixture
def demo_dir(tmp_path, two_round_log):
    (tmp_path / "a_good.json").write_text(json.dumps(two_round_log), encoding="utf-8")
    (tmp_path / "b_broken.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "c_shape.json").write_text(json.dumps({"meta": {}}), encoding="utf-8")
    (tmp_path / "d_good.json").write_text(json.dumps(two_round_log["events"]), encoding="utf-8")
    return tmp_path


class TestImportFile:
    def test_success(self, demo_dir):
        result = import_file(demo_dir / "a_good.json")
        assert result.success
        assert result.failure is None
        assert len(result.match.rounds) == 2

    def test_failure_never_raises(self, demo_dir):
        result = import_file(demo_dir / "b_broken.json")
        assert not result.success
        assert result.failure.filename == "b_broken.json"
        assert "not valid JSON" in result.failure.error_message

    def test_missing_file(self, tmp_path):
        result = import_file(tmp_path / "nope.json")
        assert not result.success


class TestBatchImporter:
    """One bad file never aborts the batch."""

    def test_failures_are_isolated(self, demo_dir):
        batch = BatchImporter(workers=2).import_directory(demo_dir)

        assert batch.successful == 2
        assert batch.failed == 2
        assert {f.filename for f in batch.failures} == {"b_broken.json", "c_shape.json"}
        assert batch.success_rate == 50.0

    def test_results_keep_input_order(self, demo_dir):
        paths = sorted(demo_dir.glob("*.json"), reverse=True)
        batch = BatchImporter(workers=4).import_files(paths)
        assert [r.filename for r in batch.results] == [p.name for p in paths]

    def test_progress_callback(self, demo_dir):
        seen: list[int] = []

        def on_progress(progress: BatchProgress) -> None:
            seen.append(progress.completed_tasks)

        BatchImporter(workers=1, progress_callback=on_progress).import_directory(demo_dir)
        assert seen == [1, 2, 3, 4]

    def test_from_config(self, roster_config):
        roster_config.batch.workers = 3
        importer = BatchImporter.from_config(roster_config)
        assert importer.workers == min(3, MAX_WORKERS)
        assert importer.config is roster_config

    def test_empty_batch(self):
        batch = BatchImporter().import_files([])
        assert batch.results == []
        assert batch.success_rate == 0.0

    def test_to_dict(self, demo_dir):
        summary = BatchImporter(workers=2).import_directory(demo_dir).to_dict()
        assert summary["total"] == 4
        assert summary["failures"][0]["errorMessage"]

    def test_roster_config_reaches_workers(self, demo_dir, roster_config):
        batch = BatchImporter(workers=2, config=roster_config).import_files(
            [demo_dir / "a_good.json"]
        )
        match = batch.matches[0]
        assert {p.player_id for p in match.players} == {f"alpha{i}" for i in range(1, 6)}
