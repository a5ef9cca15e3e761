"""Job / JobTable 模块测试。

测试内容：
- Job 状态机（STARTING -> RUNNING -> COMPLETED）
- 退出码只写一次，完成后输出不再变化
- 读取即清理：已完成的 Job 最多被成功读取一次
- 并发读取下的清理原子性
"""

from __future__ import annotations

import threading
from unittest import mock

import pytest

from shell_exec_mcp.errors import JobNotFoundError
from shell_exec_mcp.jobs import Job, JobSnapshot, JobState, JobTable, generate_job_id
from shell_exec_mcp.runtime import ShellProcess


def make_process(pid: int = 4321) -> mock.MagicMock:
    process = mock.MagicMock(spec=ShellProcess)
    process.pid = pid
    return process


class TestGenerateJobId:

    def test_format(self):
        job_id = generate_job_id()
        assert len(job_id) == 8
        assert job_id.isalnum()

    def test_unique(self):
        ids = {generate_job_id() for _ in range(1000)}
        assert len(ids) == 1000


class TestJobStateMachine:

    def test_starting(self):
        job = Job("abc")
        assert job.state == JobState.STARTING
        assert job.pid == 0
        assert job.exit_code is None

    def test_attach_moves_to_running(self):
        job = Job("abc")
        job.attach(make_process(99))
        assert job.state == JobState.RUNNING
        assert job.pid == 99

    def test_attach_twice_raises(self):
        job = Job("abc")
        job.attach(make_process())
        with pytest.raises(RuntimeError):
            job.attach(make_process())

    def test_complete_once(self):
        job = Job("abc")
        job.attach(make_process())

        assert job.complete(0) is True
        assert job.complete(5) is False
        assert job.exit_code == 0
        assert job.state == JobState.COMPLETED

    def test_attach_after_complete_raises(self):
        job = Job("abc")
        job.fail(FileNotFoundError("bash"))
        with pytest.raises(RuntimeError):
            job.attach(make_process())

    def test_fail_records_note(self):
        job = Job("abc")
        job.append_stderr("partial")
        assert job.fail(OSError("broken pipe")) is True

        snapshot = job.snapshot()
        assert snapshot.exit_code == 1
        assert snapshot.stderr == "partial\nProcess error: broken pipe"

    def test_fail_after_complete_is_ignored(self):
        job = Job("abc")
        job.complete(0)
        assert job.fail(OSError("late")) is False
        assert job.snapshot().stderr == ""
        assert job.exit_code == 0

    def test_output_frozen_after_completion(self):
        job = Job("abc")
        job.append_stdout("a")
        job.complete(0)
        job.append_stdout("b")
        job.append_stderr("c")

        snapshot = job.snapshot()
        assert snapshot.stdout == "a"
        assert snapshot.stderr == ""

    def test_accumulates_in_order(self):
        job = Job("abc")
        for chunk in ("one\n", "two\n", "three\n"):
            job.append_stdout(chunk)
        assert job.snapshot().stdout == "one\ntwo\nthree\n"


class TestJobSnapshot:

    def test_running_dict(self):
        snapshot = JobSnapshot(stdout="x", stderr="", exit_code=None)
        assert snapshot.running is True
        assert snapshot.to_dict() == {
            "stdout": "x",
            "stderr": "",
            "exitCode": None,
            "running": True,
        }

    def test_completed_dict(self):
        snapshot = JobSnapshot(stdout="", stderr="e", exit_code=2)
        assert snapshot.to_dict()["running"] is False
        assert snapshot.to_dict()["exitCode"] == 2


class TestJobTable:

    def test_insert_and_lookup(self):
        table = JobTable()
        job = Job("job-1")
        table.insert(job)

        assert table.lookup("job-1") is job
        assert "job-1" in table
        assert len(table) == 1
        assert table.lookup("missing") is None

    def test_duplicate_insert_raises(self):
        table = JobTable()
        table.insert(Job("job-1"))
        with pytest.raises(ValueError, match="already registered"):
            table.insert(Job("job-1"))

    def test_unknown_id_raises(self):
        table = JobTable()
        with pytest.raises(JobNotFoundError, match="Job not found: nonexistent"):
            table.read_and_maybe_evict("nonexistent")

    def test_running_job_not_evicted(self):
        table = JobTable()
        job = Job("job-1")
        job.attach(make_process())
        job.append_stdout("working")
        table.insert(job)

        for _ in range(5):
            snapshot = table.read_and_maybe_evict("job-1")
            assert snapshot.running is True
            assert snapshot.exit_code is None
            assert snapshot.stdout == "working"

        assert "job-1" in table

    def test_completed_job_read_once(self):
        table = JobTable()
        job = Job("job-1")
        job.attach(make_process())
        job.append_stdout("done\n")
        job.complete(0)
        table.insert(job)

        snapshot = table.read_and_maybe_evict("job-1")
        assert snapshot.running is False
        assert snapshot.stdout == "done\n"
        assert snapshot.exit_code == 0
        assert "job-1" not in table

        with pytest.raises(JobNotFoundError):
            table.read_and_maybe_evict("job-1")
        assert table.lookup("job-1") is None

    def test_concurrent_readers_single_winner(self):
        table = JobTable()
        job = Job("job-1")
        job.complete(0)
        table.insert(job)

        readers = 16
        barrier = threading.Barrier(readers)
        results: list[str] = []
        results_lock = threading.Lock()

        def reader() -> None:
            barrier.wait()
            try:
                table.read_and_maybe_evict("job-1")
                outcome = "ok"
            except JobNotFoundError:
                outcome = "not_found"
            with results_lock:
                results.append(outcome)

        threads = [threading.Thread(target=reader) for _ in range(readers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("ok") == 1
        assert results.count("not_found") == readers - 1
