"""Tests for CLI app entry point."""

from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from chorus.cli.app import app

runner = CliRunner()


def test_version_command():
    """Test 'version' prints chorus version string."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "chorus version" in result.output


def test_no_args_shows_help():
    """Test invoking with no arguments shows help (no_args_is_help)."""
    result = runner.invoke(app, [])
    assert result.exit_code in (0, 2)
    assert "Usage" in result.output or "chorus" in result.output


def test_users_create_and_list(tmp_config_path):
    result = runner.invoke(
        app, ["users", "create", "alice", "--id", "u-1", "-c", str(tmp_config_path)]
    )
    assert result.exit_code == 0
    assert "u-1" in result.output

    result = runner.invoke(app, ["users", "list", "-c", str(tmp_config_path)])
    assert result.exit_code == 0
    assert "alice" in result.output


def test_agents_list_and_show(tmp_config_path, tmp_path):
    from chorus.storage import Database, SubAgentStore

    store = SubAgentStore(Database(tmp_path / "chorus.db"))
    agent, _ = store.upsert("travel", "Plan trips.")
    store.update_prompt(agent.id, "Plan cheap trips.", policy="replace")

    result = runner.invoke(app, ["agents", "list", "-c", str(tmp_config_path)])
    assert result.exit_code == 0
    assert "travel" in result.output

    result = runner.invoke(app, ["agents", "show", "travel", "-c", str(tmp_config_path)])
    assert result.exit_code == 0
    assert "Plan cheap trips." in result.output
    assert "Plan trips." in result.output


def test_agents_show_unknown(tmp_config_path):
    result = runner.invoke(app, ["agents", "show", "ghost", "-c", str(tmp_config_path)])
    assert result.exit_code == 1


def test_invalid_config_exits(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("agent: [oops")

    result = runner.invoke(app, ["users", "list", "-c", str(path)])
    assert result.exit_code == 1


def test_serve_command(tmp_config_path):
    """Test 'serve' builds the app and hands it to uvicorn."""
    with patch("uvicorn.run") as mock_run:
        result = runner.invoke(app, ["serve", "-c", str(tmp_config_path), "--port", "9100"])

    assert result.exit_code == 0
    mock_run.assert_called_once()
    assert mock_run.call_args.kwargs["port"] == 9100


def test_chat_command_delegates(tmp_config_path):
    with patch("chorus.cli.chat.chat_session", new_callable=AsyncMock) as mock_session:
        result = runner.invoke(app, ["chat", "--user", "u-1", "-c", str(tmp_config_path)])

    assert result.exit_code == 0
    mock_session.assert_called_once()
    assert mock_session.call_args.kwargs["user_id"] == "u-1"
