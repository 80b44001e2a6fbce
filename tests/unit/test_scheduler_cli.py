import json
from types import SimpleNamespace

import pytest

from signage.config import AppConfig
from signage.services.container import ServiceContainer
from signage.workers.scheduler_cli import main


@pytest.fixture()
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("SIGNAGE_DATABASE_PATH", str(tmp_path / "signage.db"))
    monkeypatch.setenv("SIGNAGE_LOG_FILE", "")
    monkeypatch.delenv("SIGNAGE_DEVICES", raising=False)
    # Keep log lines out of captured stdout
    monkeypatch.setattr("signage.workers.scheduler_cli.setup_logging", lambda **kwargs: None)
    return tmp_path


@pytest.fixture()
def seeded(env, make_item):
    container = ServiceContainer.build(AppConfig(), start_scheduler=False)
    try:
        item = container.scheduling_service.create_item(make_item("Lobby notice", devices=("TV2",)))
    finally:
        container.shutdown()
    return item


def test_resolve_prints_item(seeded, capsys):
    assert main(["resolve", "TV 2"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["item_id"] == seeded.item_id
    assert out["title"] == "Lobby notice"


def test_resolve_idle_device(seeded, capsys):
    assert main(["resolve", "TV1"]) == 0
    assert json.loads(capsys.readouterr().out) is None


def test_status(seeded, capsys):
    assert main(["status", "TV2"]) == 0
    assert json.loads(capsys.readouterr().out)["immediate_items"] == 1


def test_sweep(env, capsys):
    assert main(["sweep"]) == 0
    assert json.loads(capsys.readouterr().out)["windows_expired"] == 0


def test_unknown_device_exits_nonzero(env, capsys):
    assert main(["resolve", "Lobby"]) == 2
    assert "Unknown device" in capsys.readouterr().out


def test_container_starts_and_stops_scheduler(env):
    container = ServiceContainer.build(AppConfig())
    try:
        assert container.scheduler.is_running()
        assert [job.job_id for job in container.scheduler.get_jobs()] == ["content_sweep"]
    finally:
        container.shutdown()
    assert not container.scheduler.is_running()


def test_run_logs_job_summary_on_interrupt(env, monkeypatch, caplog):
    def interrupt(_seconds):
        raise KeyboardInterrupt

    monkeypatch.setattr("signage.workers.scheduler_cli.time", SimpleNamespace(sleep=interrupt))
    with caplog.at_level("INFO", logger="signage.workers.scheduler_cli"):
        assert main(["run"]) == 0

    assert "Stopping scheduler" in caplog.text
    assert "Job summary" in caplog.text
    assert '"job_id": "content_sweep"' in caplog.text
