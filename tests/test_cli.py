"""Tests for CLI commands."""

import json

from click.testing import CliRunner

from graphtrail.cli import cli


runner = CliRunner()

SCRIPT = [
    {"op": "create_entity", "ref": "alice", "label": "Alice", "type": "Person"},
    {"op": "create_entity", "ref": "acme", "label": "ACME", "type": "Company"},
    {"op": "create_connection", "from": "alice", "to": "acme", "relationship": "works_for",
     "mark": "hired"},
    {"op": "update_entity", "ref": "alice", "label": "Alice Smith"},
    {"op": "undo"},
]

CLEAN_ENV = {"GRAPHTRAIL_MAX_HISTORY": None, "GRAPHTRAIL_BUSY_POLICY": None}


def _write(tmp_path, steps, name="script.json"):
    path = tmp_path / name
    path.write_text(json.dumps(steps))
    return str(path)


def test_replay_json(tmp_path):
    """Test replay --json reports graph, steps and panel rows."""
    result = runner.invoke(cli, ["replay", "--json", _write(tmp_path, SCRIPT)], env=CLEAN_ENV)

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert len(data["entities"]) == 2
    assert len(data["connections"]) == 1
    assert data["history"]["last_redo"] == "Edited entity: Alice Smith"
    assert len(data["steps"]) == 5
    assert [row["section"] for row in data["panel"]] == [
        "redo", "current", "undo", "undo", "undo"
    ]
    assert data["panel"][0]["action"] == "redo_to"


def test_replay_tables(tmp_path):
    """Test replay prints graph tables and the history panel."""
    result = runner.invoke(cli, ["replay", _write(tmp_path, SCRIPT)], env=CLEAN_ENV)

    assert result.exit_code == 0
    assert "Entities (2)" in result.output
    assert "Edit history" in result.output
    assert "current state" in result.output


def test_replay_no_panel(tmp_path):
    result = runner.invoke(
        cli, ["replay", "--no-panel", _write(tmp_path, SCRIPT)], env=CLEAN_ENV
    )

    assert result.exit_code == 0
    assert "Edit history" not in result.output


def test_replay_respects_history_cap(tmp_path):
    """Test GRAPHTRAIL_MAX_HISTORY limits the undo stack."""
    steps = [{"op": "create_entity", "label": f"E{i}"} for i in range(4)]
    result = runner.invoke(
        cli,
        ["replay", "--json", _write(tmp_path, steps)],
        env={"GRAPHTRAIL_MAX_HISTORY": "2", "GRAPHTRAIL_BUSY_POLICY": None},
    )

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert len(data["entities"]) == 4
    assert data["history"]["total"] == 2


def test_replay_bad_step(tmp_path):
    """Test a malformed step exits with an error."""
    steps = [{"op": "create_entity", "label": "A"}, {"op": "explode"}]
    result = runner.invoke(cli, ["replay", _write(tmp_path, steps)], env=CLEAN_ENV)

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "unknown op" in result.output


def test_replay_unknown_entity(tmp_path):
    steps = [{"op": "update_entity", "ref": "ghost", "label": "Boo"}]
    result = runner.invoke(cli, ["replay", _write(tmp_path, steps)], env=CLEAN_ENV)

    assert result.exit_code == 1
    assert "Entity not found" in result.output


def test_replay_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("not json")
    result = runner.invoke(cli, ["replay", str(path)], env=CLEAN_ENV)

    assert result.exit_code == 1
    assert "Invalid JSON" in result.output


def test_replay_missing_file(tmp_path):
    result = runner.invoke(cli, ["replay", str(tmp_path / "nope.json")])

    assert result.exit_code != 0


def test_settings_defaults():
    result = runner.invoke(cli, ["settings"], env=CLEAN_ENV)

    assert result.exit_code == 0
    assert "max history: 100" in result.output
    assert "busy policy: queue" in result.output


def test_settings_from_env():
    result = runner.invoke(
        cli,
        ["settings"],
        env={"GRAPHTRAIL_MAX_HISTORY": "none", "GRAPHTRAIL_BUSY_POLICY": "reject"},
    )

    assert result.exit_code == 0
    assert "unbounded" in result.output
    assert "reject" in result.output


def test_settings_invalid_env():
    result = runner.invoke(cli, ["settings"], env={"GRAPHTRAIL_MAX_HISTORY": "lots"})

    assert result.exit_code == 1
    assert "Error:" in result.output
