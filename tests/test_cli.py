import json
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
import cli


def _store(tmp_path):
    return ["--db", str(tmp_path / "cli.db"), "--yaml", str(tmp_path / "settings.yaml")]


def test_convert(capsys):
    assert cli.main(["convert", "--value", "1", "--from", "kg", "--to", "g"]) == 0
    assert capsys.readouterr().out.strip() == "1.0 kg = 1000 g"


def test_convert_unknown_unit(capsys):
    assert cli.main(["convert", "--value", "1", "--from", "kg", "--to", "stone"]) == 1
    assert "unsupported target unit" in capsys.readouterr().err


def test_schedule_cyclic(tmp_path, capsys):
    args = ["schedule-cyclic", *_store(tmp_path), "--owner", "alice", "--weeks", "1",
            "--refs", "push", "pull"]
    assert cli.main(args) == 0
    plans = json.loads(capsys.readouterr().out)
    assert [p["workout_id"] for p in plans] == ["push", "pull"]
    assert sum(len(p["dates"]) for p in plans) == 7


def test_schedule_weekly_invalid_weeks(tmp_path, capsys):
    args = ["schedule-weekly", *_store(tmp_path), "--owner", "alice", "--weeks", "0",
            "--refs", "a", "b", "c", "d", "e", "f", "g"]
    assert cli.main(args) == 1
    assert "weeks" in capsys.readouterr().err


def test_repmax_without_data(tmp_path, capsys):
    args = ["repmax", *_store(tmp_path), "--owner", "alice", "--exercise-id", "1"]
    assert cli.main(args) == 1
    assert "no valid sets" in capsys.readouterr().err


def test_demo_then_reports(tmp_path, capsys):
    assert cli.main(["demo", *_store(tmp_path)]) == 0
    assert "Demo data inserted" in capsys.readouterr().out
    assert cli.main(["demo", *_store(tmp_path)]) == 0
    assert "already" in capsys.readouterr().out

    assert cli.main(["standards", *_store(tmp_path), "--owner", "demo"]) == 0
    standards = json.loads(capsys.readouterr().out)
    assert {r["exercise"] for r in standards["exercise_standards"]} == {"Bench Press", "Squat"}

    assert cli.main(["repmax", *_store(tmp_path), "--owner", "demo", "--exercise-id", "1",
                     "--latest"]) == 0
    rep_max = json.loads(capsys.readouterr().out)
    assert rep_max["one_rep_max"] > 0


def test_backup_and_restore(tmp_path):
    db = tmp_path / "cli.db"
    db.write_bytes(b"original")
    backup = tmp_path / "backup.db"
    assert cli.main(["backup", "--db", str(db), "--out", str(backup)]) == 0
    db.write_bytes(b"changed")
    assert cli.main(["restore", "--in", str(backup), "--db", str(db)]) == 0
    assert db.read_bytes() == b"original"
