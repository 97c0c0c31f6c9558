import logging
import signal
from contextlib import contextmanager

import pytest

from hytale_manager import service_runner


@pytest.mark.skipif(service_runner.fcntl is None, reason="fcntl not available on this platform")
def test_service_instance_lock_acquire_release(tmp_path):
    lock = service_runner.ServiceInstanceLock("sample_service", tmp_path / "runtime")
    lock.acquire()
    assert lock.lock_path.exists()
    assert lock.lock_path.read_text().strip().isdigit()
    lock.release()
    assert not lock.lock_path.exists()
    lock.release()


def test_single_instance_guard_context_manager(tmp_path):
    if service_runner.fcntl is None:
        pytest.skip("fcntl required for single_instance_guard test")

    with service_runner.single_instance_guard("guarded", tmp_path):
        with pytest.raises(service_runner.SingleInstanceError, match="appears to be running already"):
            with service_runner.single_instance_guard("guarded", tmp_path):
                pass

    with service_runner.single_instance_guard("guarded", tmp_path):
        pass


@pytest.fixture
def unguarded(monkeypatch):
    @contextmanager
    def fake_guard(name, runtime_dir):
        yield

    monkeypatch.setattr(service_runner, "single_instance_guard", fake_guard)
    monkeypatch.setattr(service_runner, "setup_logging", lambda name, log_dir=None: None)


def test_run_async_service_handles_keyboard_interrupt(unguarded, tmp_path, caplog):
    executed = {}

    async def factory():
        executed["ran"] = True
        raise KeyboardInterrupt()

    with caplog.at_level(logging.INFO):
        service_runner.run_async_service(factory, service_name="test_service", runtime_dir=tmp_path)

    assert executed.get("ran") is True
    assert any("test_service service interrupted by user" in record.getMessage() for record in caplog.records)


def test_run_async_service_uses_custom_shutdown_message(unguarded, tmp_path, caplog):
    async def factory():
        raise KeyboardInterrupt()

    with caplog.at_level(logging.INFO):
        service_runner.run_async_service(
            factory, service_name="quiet", runtime_dir=tmp_path, shutdown_message="Manager stopped"
        )

    assert any(record.getMessage() == "Manager stopped" for record in caplog.records)


def test_run_async_service_propagates_other_exceptions(unguarded, tmp_path):
    async def factory():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        service_runner.run_async_service(factory, service_name="boom_service", runtime_dir=tmp_path)


def test_run_async_service_exits_when_already_running(monkeypatch, tmp_path, capsys):
    @contextmanager
    def busy_guard(name, runtime_dir):
        raise service_runner.SingleInstanceError("Service 'busy' appears to be running already.")
        yield

    async def factory():
        raise AssertionError("factory must not run")

    monkeypatch.setattr(service_runner, "single_instance_guard", busy_guard)

    with pytest.raises(SystemExit) as exc_info:
        service_runner.run_async_service(factory, service_name="busy", runtime_dir=tmp_path)

    assert exc_info.value.code == 1
    assert "appears to be running already" in capsys.readouterr().err


def test_run_async_service_handles_missing_sighup(unguarded, monkeypatch, tmp_path, caplog):
    async def factory():
        pass

    real_signal = signal.signal

    def fake_signal(signum, handler):
        if signum == signal.SIGHUP:
            raise AttributeError("no signal")
        return real_signal(signum, handler)

    monkeypatch.setattr(service_runner.signal, "signal", fake_signal)

    with caplog.at_level(logging.DEBUG):
        service_runner.run_async_service(factory, service_name="sig_service", runtime_dir=tmp_path, ignore_sighup=True)

    assert any("SIGHUP not available" in record.getMessage() for record in caplog.records)
