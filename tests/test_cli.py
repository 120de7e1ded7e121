import json
import uuid

from typer.testing import CliRunner

from freshstock_admin.cli import app
from freshstock_admin.config import get_settings

runner = CliRunner()


def test_show_paths() -> None:
    result = runner.invoke(app, ["show-paths"])
    assert result.exit_code == 0
    assert str(get_settings().database_path) in result.output


def test_create_admin_and_bulk_update(tmp_path) -> None:
    username = f"cli-{uuid.uuid4().hex[:8]}"
    result = runner.invoke(app, ["create-admin", username, "--password", "cli-password"])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["create-admin", username, "--password", "cli-password"])
    assert result.exit_code == 1
    assert "already exists" in result.output

    result = runner.invoke(app, ["list-operators"])
    assert username in result.output

    source = tmp_path / "changes.json"
    source.write_text(json.dumps([{"item_id": 987654, "rate": 12.5}]), encoding="utf-8")
    result = runner.invoke(app, ["bulk-update", str(source), "--operator", username, "--max-retries", "1"])
    assert result.exit_code == 1
    assert "Items not found: 987654" in result.output

    result = runner.invoke(app, ["audit-log", "--limit", "1"])
    assert result.exit_code == 0
    assert username in result.output


def test_purge_requires_positive_days() -> None:
    result = runner.invoke(app, ["purge-ledger", "--days", "0", "--yes"])
    assert result.exit_code != 0


def test_ledger_report_for_empty_day() -> None:
    result = runner.invoke(app, ["ledger-report", "--date", "1999-01-01"])
    assert result.exit_code == 0
    assert "Entries:          0" in result.output
