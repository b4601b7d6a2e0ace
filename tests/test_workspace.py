from __future__ import annotations

import asyncio
import signal
import sys

from persona_crawler.storage.lifecycle import RunLifecycle
from persona_crawler.storage.workspace import StorageIsolationManager


def test_initialize_creates_layout(tmp_path):
    base = tmp_path / "missing" / "base"
    manager = StorageIsolationManager(base, "run-1", cleanup_on_exit=False)
    path = manager.initialize()

    assert path == base / "run-1"
    for kind in ("queue", "dataset", "state"):
        assert (path / kind).is_dir()

    info = manager.get_run_info()
    assert info.run_id == "run-1"
    assert info.path == path
    assert info.cleanup_on_exit is False
    assert info.retain_on_error is False


def test_generated_run_ids_do_not_collide(tmp_path):
    a = StorageIsolationManager(tmp_path, cleanup_on_exit=False)
    b = StorageIsolationManager(tmp_path, cleanup_on_exit=False)
    assert a.run_id != b.run_id
    assert a.path != b.path


def test_cleanup_twice_is_quiet(tmp_path, caplog):
    manager = StorageIsolationManager(tmp_path, "r1", cleanup_on_exit=False)
    manager.initialize()
    (manager.path_for("dataset") / "records.jsonl").write_text("{}\n", encoding="utf-8")

    manager.cleanup()
    assert not manager.path.exists()
    assert manager.get_run_info().is_cleaned_up

    caplog.clear()
    manager.cleanup()
    assert not [r for r in caplog.records if r.levelname == "WARNING"]


def test_cleanup_runs_custom_handlers_first(tmp_path):
    manager = StorageIsolationManager(tmp_path, "r1", cleanup_on_exit=False)
    manager.initialize()
    seen = []
    manager.add_cleanup_handler(lambda: seen.append(manager.path.exists()))
    manager.add_cleanup_handler(lambda: 1 / 0)  # failures are logged, not raised

    manager.cleanup()
    assert seen == [True]
    assert not manager.path.exists()


def test_child_is_cleaned_by_parent_only(tmp_path):
    parent = StorageIsolationManager(tmp_path, "r1", cleanup_on_exit=False)
    parent.initialize()
    child = parent.create_child("x")
    child.initialize()

    assert child.path != parent.path
    assert child.run_id == "r1_x"
    assert child.get_run_info().cleanup_on_exit is False

    child.cleanup()
    assert child.path.exists()

    parent.cleanup()
    assert not parent.path.exists()
    assert not child.path.exists()


def test_forced_child_cleanup(tmp_path):
    parent = StorageIsolationManager(tmp_path, "r1", cleanup_on_exit=False)
    child = parent.create_child("scope")
    child.initialize()

    child.cleanup(force=True)
    assert not child.path.exists()


def test_lifecycle_handlers_registered_and_released(tmp_path):
    before = signal.getsignal(signal.SIGTERM)
    hook_before = sys.excepthook
    manager = StorageIsolationManager(tmp_path, "r1", cleanup_on_exit=True)
    manager.initialize()
    try:
        assert signal.getsignal(signal.SIGTERM) != before
        assert sys.excepthook != hook_before
    finally:
        manager.cleanup()
    assert signal.getsignal(signal.SIGTERM) == before
    assert sys.excepthook == hook_before


def test_two_runs_do_not_stack_handlers(tmp_path):
    before = signal.getsignal(signal.SIGINT)
    first = StorageIsolationManager(tmp_path, "a", cleanup_on_exit=True)
    second = StorageIsolationManager(tmp_path, "b", cleanup_on_exit=True)
    first.initialize()
    first.cleanup()
    second.initialize()
    second.cleanup()
    assert signal.getsignal(signal.SIGINT) == before


def test_signal_path_cleans_and_exits():
    calls, codes = [], []
    lifecycle = RunLifecycle(lambda: calls.append("cleanup"), lambda: calls.append("retain"), exit_func=codes.append)
    lifecycle.install()
    lifecycle._handle_signal(signal.SIGTERM, None)

    assert calls == ["cleanup"]
    assert codes == [128 + signal.SIGTERM]
    assert not lifecycle.installed


def test_uncaught_exception_retains_when_asked(tmp_path):
    codes = []
    manager = StorageIsolationManager(
        tmp_path, "r1", cleanup_on_exit=True, retain_on_error=True, exit_func=codes.append
    )
    manager.initialize()
    try:
        sys.excepthook(ValueError, ValueError("boom"), None)
        assert manager.path.exists()
        assert codes == [1]
    finally:
        manager.cleanup()


def test_uncaught_exception_removes_workspace(tmp_path):
    codes = []
    manager = StorageIsolationManager(tmp_path, "r1", cleanup_on_exit=True, exit_func=codes.append)
    manager.initialize()
    sys.excepthook(ValueError, ValueError("boom"), None)

    assert not manager.path.exists()
    assert codes == [1]


async def test_unhandled_loop_error_triggers_cleanup():
    calls, codes = [], []
    lifecycle = RunLifecycle(lambda: calls.append("cleanup"), lambda: calls.append("retain"), exit_func=codes.append)
    lifecycle.install()
    loop = asyncio.get_running_loop()
    loop.call_exception_handler({"message": "task failed", "exception": RuntimeError("x")})

    assert calls == ["cleanup"]
    assert codes == [1]
    assert loop.get_exception_handler() is None
