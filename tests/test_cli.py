import asyncio
import json
import sys

import pytest
from typer.testing import CliRunner

if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from report_file_store import create_file_store
from report_file_store.cli import app
from report_file_store.config import reset_settings

runner = CliRunner()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Окружение CLI: SQLite-файл и каталог загрузок во временной папке."""
    upload_dir = tmp_path / "uploads"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("UPLOAD_DIR", str(upload_dir))
    monkeypatch.setenv("MAX_FILE_SIZE", "4096")
    reset_settings()
    yield upload_dir
    reset_settings()


def last_json_line(output: str) -> dict:
    for line in reversed(output.strip().splitlines()):
        line = line.strip()
        if line.startswith("{") and '"storedName"' in line:
            return json.loads(line)
    raise AssertionError(f"No upload result in output:\n{output}")


def test_cli_init_upload_and_stats(cli_env, tmp_path):
    """
    Сквозной сценарий: init создаёт таблицы и каталог, upload дедуплицирует,
    stats и check отрабатывают без ошибок.
    """
    result_init = runner.invoke(app, ["init"])
    assert result_init.exit_code == 0, result_init.output
    assert cli_env.is_dir()

    report = tmp_path / "brochure.pdf"
    report.write_bytes(b"%PDF-1.4\n" + b"\x00" * 91)

    first = runner.invoke(app, ["upload", str(report)])
    assert first.exit_code == 0, first.output
    payload = last_json_line(first.output)
    assert payload["size"] == 100
    assert payload["mimeType"] == "application/pdf"
    assert (cli_env / payload["storedName"]).is_file()

    copy = tmp_path / "copy.pdf"
    copy.write_bytes(report.read_bytes())
    second = runner.invoke(app, ["upload", str(copy)])
    assert second.exit_code == 0, second.output
    assert last_json_line(second.output)["id"] == payload["id"]
    assert len(list(cli_env.iterdir())) == 1

    result_stats = runner.invoke(app, ["stats"])
    assert result_stats.exit_code == 0, result_stats.output
    assert "Total files: 1" in result_stats.output

    result_check = runner.invoke(app, ["check"])
    assert result_check.exit_code == 0, result_check.output

    result_info = runner.invoke(app, ["info", payload["id"]])
    assert result_info.exit_code == 0, result_info.output
    assert '"original_name": "brochure.pdf"' in result_info.output


def test_cli_upload_rejects_bad_signature(cli_env, tmp_path):
    assert runner.invoke(app, ["init"]).exit_code == 0

    fake = tmp_path / "fake.pdf"
    fake.write_bytes(b"just text pretending to be a pdf")

    result = runner.invoke(app, ["upload", str(fake)])

    assert result.exit_code == 1
    assert list(cli_env.iterdir()) == []


def test_cli_delete_reports_unknown_ids(cli_env, tmp_path):
    assert runner.invoke(app, ["init"]).exit_code == 0

    report = tmp_path / "a.pdf"
    report.write_bytes(b"%PDF-1.4\n" + b"a" * 10)
    payload = last_json_line(runner.invoke(app, ["upload", str(report)]).output)

    unknown = "00000000-0000-0000-0000-000000000000"
    result = runner.invoke(app, ["delete", payload["id"], unknown])

    assert result.exit_code == 1
    assert unknown in result.output
    assert list(cli_env.iterdir()) == []

    async def _count():
        store = create_file_store()
        try:
            return (await store.list_files()).total
        finally:
            await store.aclose()

    assert asyncio.run(_count()) == 0


def test_cli_health(cli_env):
    assert runner.invoke(app, ["init"]).exit_code == 0

    result = runner.invoke(app, ["health"])

    assert result.exit_code == 0, result.output
    assert '"status":"healthy"' in result.output


@pytest.mark.parametrize("command", [["stats"], ["list"], ["cleanup"], ["delete", "00000000-0000-0000-0000-000000000000"]])
def test_cli_reports_database_errors_without_traceback(cli_env, command):
    """Без init таблиц нет: команда печатает ошибку и выходит с кодом 1."""
    result = runner.invoke(app, command)

    assert result.exit_code == 1, result.output
    assert isinstance(result.exception, SystemExit)
