import pytest
from typer.testing import CliRunner

from docker_collector.cli import app
from docker_collector.config import settings
from docker_collector.store import DocumentStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    path = tmp_path / "cli.db"
    monkeypatch.setattr(settings, "db_path", path)
    return path


def test_add_and_list_targets(isolated_db):
    result = runner.invoke(app, ["add-target", "tcp://10.0.0.5:2375", "--api-version", "1.43", "--name", "edge"])
    assert result.exit_code == 0, result.output

    with DocumentStore(isolated_db) as store:
        (item,) = store.list_collector_items()
    assert item.options == {"host": "tcp://10.0.0.5:2375", "apiVersion": "1.43"}
    assert item.niceName == "edge"

    result = runner.invoke(app, ["targets"])
    assert result.exit_code == 0
    assert "edge" in result.output


def test_disable_unknown_target_fails():
    result = runner.invoke(app, ["disable", "missing"])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_load_targets_and_disable(tmp_path, isolated_db):
    path = tmp_path / "targets.yaml"
    path.write_text("targets:\n  - id: t1\n    options:\n      host: tcp://a:2375\n      apiVersion: '1.41'\n")

    assert runner.invoke(app, ["load-targets", str(path)]).exit_code == 0
    assert runner.invoke(app, ["disable", "t1"]).exit_code == 0

    with DocumentStore(isolated_db) as store:
        assert store.get_collector_item("t1").enabled is False


def test_status_before_first_run():
    result = runner.invoke(app, ["status"])

    assert result.exit_code == 1
    assert "has not run yet" in result.output


def test_collect_with_no_targets_registers_collector(isolated_db):
    result = runner.invoke(app, ["collect"])
    assert result.exit_code == 0, result.output

    with DocumentStore(isolated_db) as store:
        record = store.find_collector(settings.collector_name)
    assert record is not None
    assert record.lastExecuted > 0

    status = runner.invoke(app, ["status"])
    assert status.exit_code == 0
    assert settings.collector_name in status.output


def test_reloading_targets_file_replaces_entries_without_id(tmp_path, isolated_db):
    path = tmp_path / "targets.yaml"
    path.write_text(
        "targets:\n"
        "  - niceName: Local\n"
        "    options:\n"
        "      host: unix:///var/run/docker.sock\n"
        "      apiVersion: '1.43'\n"
    )

    assert runner.invoke(app, ["load-targets", str(path)]).exit_code == 0
    assert runner.invoke(app, ["load-targets", str(path)]).exit_code == 0

    with DocumentStore(isolated_db) as store:
        items = store.list_collector_items()
    assert [(i.niceName, i.host) for i in items] == [("Local", "unix:///var/run/docker.sock")]
