"""Job store and task runner tests"""

import threading
import time

from pdf_autofill.job_store import InMemoryJobStore
from pdf_autofill.models import Job
from pdf_autofill.runners import InlineTaskRunner, ThreadTaskRunner, run_later


class TestInMemoryJobStore:
    def test_set_get_delete(self):
        store = InMemoryJobStore()
        job = Job(id="j1", total=1)
        store.set(job)
        assert store.get("j1") is job
        assert len(store) == 1
        store.delete("j1")
        store.delete("j1")
        assert store.get("j1") is None

    def test_jobs_expire(self):
        store = InMemoryJobStore(ttl_seconds=0.05)
        store.set(Job(id="j1"))
        time.sleep(0.1)
        assert store.get("j1") is None


class TestRunners:
    def test_inline_runner_runs_before_returning(self):
        calls = []
        InlineTaskRunner().submit(calls.append, 1)
        assert calls == [1]

    def test_inline_runner_logs_failures(self, caplog):
        def boom():
            raise RuntimeError("boom")

        InlineTaskRunner().submit(boom)
        assert "boom" in caplog.text

    def test_thread_runner_does_not_block(self):
        release = threading.Event()
        done = threading.Event()

        def task():
            release.wait(5)
            done.set()

        runner = ThreadTaskRunner(max_workers=1)
        runner.submit(task)
        assert not done.is_set()
        release.set()
        assert done.wait(5)
        runner.shutdown()

    def test_run_later(self):
        fired = threading.Event()
        timer = run_later(0.01, fired.set)
        assert timer.daemon
        assert fired.wait(5)
