"""Tests for batch config validation and the batch processor."""

import json

import pytest

from helpers import ControllableExecutor, wait_for_status
from imagen_mcp.errors.exceptions import ValidationError
from imagen_mcp.models.batch import BatchConfig, BatchItemResult, BatchJobItem, BatchResult
from imagen_mcp.models.enums import BatchItemStatus, JobStatus
from imagen_mcp.services.batch import (
    MISSING_JOB_ID,
    BatchProcessor,
    batch_item_to_generate_params,
    load_batch_config,
    validate_batch_config,
)
from imagen_mcp.workers.queue import CANCELLED_MESSAGE, JobQueue


class TestValidateBatchConfig:
    def test_minimal_config(self):
        config = validate_batch_config({"jobs": [{"prompt": "a red fox"}]})
        assert len(config.jobs) == 1
        assert config.jobs[0].prompt == "a red fox"
        assert config.timeout is None

    def test_missing_jobs(self):
        with pytest.raises(ValidationError, match='"jobs" array is required'):
            validate_batch_config({"output_dir": "/tmp"})

    def test_empty_jobs(self):
        with pytest.raises(ValidationError, match='"jobs" array is required'):
            validate_batch_config({"jobs": []})

    def test_missing_prompt_names_index(self):
        with pytest.raises(ValidationError, match=r"jobs\[1\]\.prompt is required"):
            validate_batch_config({"jobs": [{"prompt": "ok"}, {"aspect_ratio": "1:1"}]})

    def test_non_string_prompt(self):
        with pytest.raises(ValidationError, match=r"jobs\[0\]\.prompt"):
            validate_batch_config({"jobs": [{"prompt": 42}]})

    def test_bad_option_wrapped(self):
        with pytest.raises(ValidationError, match="Invalid batch config") as exc_info:
            validate_batch_config({"jobs": [{"prompt": "x", "sample_count": 9}]})
        assert exc_info.value.details

    def test_non_positive_timeout(self):
        with pytest.raises(ValidationError):
            validate_batch_config({"jobs": [{"prompt": "x"}], "timeout": 0})


class TestLoadBatchConfig:
    def test_load_from_file(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps({"jobs": [{"prompt": "a"}, {"prompt": "b"}], "max_concurrent": 3}))
        config = load_batch_config(path)
        assert [j.prompt for j in config.jobs] == ["a", "b"]
        assert config.max_concurrent == 3

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text("{not json")
        with pytest.raises(ValidationError, match="not valid JSON"):
            load_batch_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_batch_config(tmp_path / "missing.json")


class TestGenerateParams:
    def test_output_filename_joined_with_dir(self):
        item = BatchJobItem(prompt="p", output_filename="fox.png", aspect_ratio="16:9")
        params = batch_item_to_generate_params(item, "/data/out")
        assert params == {
            "prompt": "p",
            "aspect_ratio": "16:9",
            "output_path": "/data/out/fox.png",
            "return_base64": False,
        }

    def test_unset_options_omitted(self):
        params = batch_item_to_generate_params(BatchJobItem(prompt="p"), "/data/out")
        assert params == {"prompt": "p", "return_base64": False}


def batch(*prompts: str, **kwargs) -> BatchConfig:
    return BatchConfig(jobs=[{"prompt": p} for p in prompts], **kwargs)


class NamedExecutor(ControllableExecutor):
    """Keys gates by prompt, since batch params carry no name."""

    async def process(self, context, params):
        return await super().process(context, {**params, "name": params["prompt"]})


class TestExecuteBatch:
    @pytest.mark.asyncio
    async def test_all_items_succeed(self, store, make_queue, tmp_path):
        queue = make_queue(NamedExecutor(blocking=False, delay=0.05), max_concurrent=2)
        processor = BatchProcessor(queue, store, str(tmp_path), poll_interval_ms=10)

        result = await processor.execute_batch(batch("fox", "owl"))

        assert result.total == 2
        assert result.succeeded == 2
        assert result.failed == 0
        assert result.total_duration_ms >= 50
        assert [r.status for r in result.results] == [BatchItemStatus.COMPLETED] * 2
        assert [r.output_path for r in result.results] == ["/images/fox.png", "/images/owl.png"]
        assert all(r.duration_ms is not None and r.duration_ms >= 40 for r in result.results)
        assert result.started_at.endswith("Z")
        assert result.finished_at.endswith("Z")

    @pytest.mark.asyncio
    async def test_failed_job_reported_with_error(self, store, make_queue, tmp_path):
        queue = make_queue(NamedExecutor(blocking=False, error=RuntimeError("quota exceeded")))
        processor = BatchProcessor(queue, store, str(tmp_path), poll_interval_ms=10)

        result = await processor.execute_batch(batch("fox"))

        assert result.succeeded == 0
        assert result.failed == 1
        assert result.results[0].status is BatchItemStatus.FAILED
        assert result.results[0].error == "quota exceeded"

    @pytest.mark.asyncio
    async def test_submission_failure_gets_placeholder(self, store, test_settings, tmp_path):
        class FlakyQueue(JobQueue):
            async def create_job(self, job_type, params):
                if params["prompt"] == "bad":
                    raise RuntimeError("database is locked")
                return await super().create_job(job_type, params)

        executor = NamedExecutor(blocking=False)
        queue = FlakyQueue(store, executors={t: executor for t in ("generate",)}, config=test_settings)
        processor = BatchProcessor(queue, store, str(tmp_path), poll_interval_ms=10)
        try:
            result = await processor.execute_batch(batch("good", "bad"))
        finally:
            await queue.stop()

        assert result.total == 2
        assert result.succeeded == 1
        assert result.failed == 1
        placeholder = result.results[1]
        assert placeholder.job_id == MISSING_JOB_ID
        assert placeholder.status is BatchItemStatus.FAILED
        assert placeholder.error == "Failed to create job"

    @pytest.mark.asyncio
    async def test_timeout_cancels_unfinished_jobs(self, store, make_queue, tmp_path):
        executor = NamedExecutor()
        queue = make_queue(executor)
        processor = BatchProcessor(queue, store, str(tmp_path), poll_interval_ms=10)

        result = await processor.execute_batch(batch("slow", timeout=200))

        entry = result.results[0]
        assert entry.status is BatchItemStatus.CANCELLED
        assert entry.error == "Timeout"
        assert result.failed == 1
        assert 200 <= result.total_duration_ms < 1000
        assert queue.is_cancel_requested(entry.job_id)

        # The flagged job ends as cancelled once the executor returns.
        executor.release("slow")
        job = await wait_for_status(store, entry.job_id, JobStatus.FAILED)
        assert job.error == CANCELLED_MESSAGE

    @pytest.mark.asyncio
    async def test_processor_timeout_used_when_config_has_none(self, store, make_queue, tmp_path):
        executor = NamedExecutor()
        queue = make_queue(executor)
        processor = BatchProcessor(queue, store, str(tmp_path), poll_interval_ms=10, timeout_ms=200)

        result = await processor.execute_batch(batch("slow"))

        entry = result.results[0]
        assert entry.status is BatchItemStatus.CANCELLED
        assert entry.error == "Timeout"
        assert result.total_duration_ms < 1000
        executor.release_all()

    @pytest.mark.asyncio
    async def test_missing_job_reported(self, store, make_queue, tmp_path):
        class ForgetfulStore:
            async def get_job(self, job_id):
                return None

        queue = make_queue(NamedExecutor(blocking=False))
        processor = BatchProcessor(queue, ForgetfulStore(), str(tmp_path), poll_interval_ms=10)

        result = await processor.execute_batch(batch("fox"))

        assert result.results[0].status is BatchItemStatus.FAILED
        assert result.results[0].error == "Job not found"

    @pytest.mark.asyncio
    async def test_config_output_dir_wins(self, store, make_queue, tmp_path):
        seen = []

        class RecordingExecutor(NamedExecutor):
            async def process(self, context, params):
                seen.append(params.get("output_path"))
                return await super().process(context, params)

        queue = make_queue(RecordingExecutor(blocking=False))
        processor = BatchProcessor(queue, store, str(tmp_path / "default"), poll_interval_ms=10)
        config = BatchConfig(
            jobs=[{"prompt": "fox", "output_filename": "fox.png"}],
            output_dir=str(tmp_path / "custom"),
        )

        await processor.execute_batch(config)
        assert seen == [str(tmp_path / "custom" / "fox.png")]


def sample_result() -> BatchResult:
    return BatchResult(
        total=2,
        succeeded=1,
        failed=1,
        results=[
            BatchItemResult(
                job_id="job_1", prompt="fox", status=BatchItemStatus.COMPLETED,
                output_path="/out/fox.png", duration_ms=1200,
            ),
            BatchItemResult(job_id=MISSING_JOB_ID, prompt="owl", status=BatchItemStatus.FAILED),
        ],
        started_at="2026-01-01T00:00:00.000Z",
        finished_at="2026-01-01T00:00:02.000Z",
        total_duration_ms=2000,
    )


class TestFormatting:
    def test_text_report(self):
        text = BatchProcessor.format_result_as_text(sample_result())
        assert text.startswith("=== Batch Processing Result ===")
        assert "Total Jobs: 2" in text
        assert "Succeeded: 1" in text
        assert "Failed: 1" in text
        assert "[1/2] COMPLETED" in text
        assert "  Output: /out/fox.png" in text
        assert "  Duration: 1200ms" in text
        assert "[2/2] FAILED" in text
        assert "  Error: No error message recorded" in text

    def test_json_report(self):
        data = json.loads(BatchProcessor.format_result_as_json(sample_result()))
        assert data["total"] == 2
        assert data["results"][0]["output_path"] == "/out/fox.png"
        assert data["results"][1]["status"] == "failed"
        assert "error" not in data["results"][1]
