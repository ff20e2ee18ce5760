"""Tests for the bakehouse command-line interface."""

import json
from decimal import Decimal

import pytest

from bakehouse.main import main
from bakehouse.services import database
from bakehouse.utils import config as config_module


@pytest.fixture(autouse=True)
def cli_db_path(monkeypatch, tmp_path):
    """Point the CLI's own database initialization at a throwaway file."""
    db_file = tmp_path / "bakehouse.db"
    monkeypatch.setenv(config_module.DB_PATH_ENV_VAR, str(db_file))
    config_module.reset_config()
    database.close_connections()
    yield db_file
    database.close_connections()
    config_module.reset_config()


def _run(capsys, *argv):
    code = main(list(argv))
    captured = capsys.readouterr()
    output = json.loads(captured.out) if code == 0 else None
    return code, output, captured.err


class TestStockCommands:
    def test_receive_release_and_reserve(self, flour, capsys):
        code, batch, _ = _run(capsys, "receive", str(flour["id"]), "LOT-9", "12", "2099-01-31")
        assert code == 0
        assert batch["qc_status"] == "pending"

        code, result, _ = _run(capsys, "set-qc", str(batch["id"]), "release")
        assert code == 0
        assert result["new_status"] == "release"

        code, allocations, _ = _run(capsys, "--user", "baker-3", "reserve", str(flour["id"]), "5")
        assert code == 0
        assert allocations == [{"batch_id": batch["id"], "quantity": "5"}]

        code, logs, _ = _run(capsys, "logs", "--material", str(flour["id"]))
        assert code == 0
        assert {entry["type"] for entry in logs} == {"batch_received", "batch_used"}

    def test_shortage_exits_with_error(self, flour, capsys):
        code, _, err = _run(capsys, "reserve", str(flour["id"]), "5")
        assert code == 1
        assert "Insufficient stock for Flour" in err

    def test_unknown_batch_exits_with_error(self, test_db, capsys):
        code, _, err = _run(capsys, "set-qc", "404", "hold")
        assert code == 1
        assert "Batch with ID 404 not found" in err

    def test_invalid_status_rejected_by_parser(self, test_db):
        with pytest.raises(SystemExit):
            main(["set-qc", "1", "approved"])

    def test_invalid_date_rejected_by_parser(self, flour):
        with pytest.raises(SystemExit):
            main(["receive", str(flour["id"]), "LOT", "1", "next tuesday"])

    def test_sweep_and_dispose(self, flour, make_batch, capsys):
        batch_id = make_batch(flour["id"], 4, expires_in=-1)

        code, result, _ = _run(capsys, "mark-expired")
        assert result == {"marked_count": 1}

        code, expired, _ = _run(capsys, "expired")
        assert [b["id"] for b in expired] == [batch_id]

        code, waste, _ = _run(capsys, "--user", "manager-1", "dispose", str(batch_id))
        assert code == 0
        assert waste["disposed_by"] == "manager-1"

        code, batches, _ = _run(capsys, "batches")
        assert batches == []


class TestProductionCommands:
    def test_plan_preview_execute(self, bread_bom, bread, flour, sugar, make_batch, capsys):
        make_batch(flour["id"], 10)
        make_batch(sugar["id"], 10, qc_status="pending")

        code, run, _ = _run(capsys, "plan", str(bread_bom["id"]), "4")
        assert run["status"] == "planned"

        code, requirements, _ = _run(capsys, "requirements", str(bread_bom["id"]), "4")
        sugar_row = [r for r in requirements if r["material_name"] == "Sugar"][0]
        assert sugar_row["is_shortage"] is False
        assert sugar_row["is_available_shortage"] is True

        code, _, err = _run(capsys, "execute", str(run["id"]), "4")
        assert code == 1
        assert "Sugar" in err

        code, pending, _ = _run(capsys, "pending-qc")
        for batch in pending:
            _run(capsys, "set-qc", str(batch["id"]), "release")

        code, result, _ = _run(capsys, "execute", str(run["id"]), "3", "--rejected", "1")
        assert code == 0
        assert Decimal(result["produced_quantity"]) == Decimal("3")

        code, _, err = _run(capsys, "cancel", str(run["id"]))
        assert code == 1
        assert "status is 'completed'" in err

    def test_archive_commands(self, test_db, capsys):
        assert _run(capsys, "archive-runs", "--days", "30")[1] == {"archived_count": 0}
        assert _run(capsys, "archive-logs")[1] == {"archived_count": 0}


class TestCliSetup:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage: bakehouse" in capsys.readouterr().out

    def test_init_db_creates_database(self, cli_db_path, capsys):
        code, result, _ = _run(capsys, "init-db")

        assert code == 0
        assert result == {"success": True}
        assert cli_db_path.exists()
        assert database.verify_database()

    def test_query_on_fresh_database_initializes_it(self, cli_db_path, capsys):
        assert not cli_db_path.exists()

        code, pending, err = _run(capsys, "pending-qc")

        assert code == 0
        assert pending == []
        assert err == ""
        assert database.verify_database()
