from unittest.mock import patch

from click.testing import CliRunner

from minecraft_world_manager.__main__ import cli


@patch("minecraft_world_manager.__main__.log_separator")
@patch("minecraft_world_manager.__main__.setup_logging")
def test_cli_sets_up_logging(mock_setup_logging, mock_separator, app_context, settings):
    result = CliRunner().invoke(cli, ["world", "info"])
    assert result.exit_code == 0, result.output
    mock_setup_logging.assert_called_once()
    assert mock_setup_logging.call_args.kwargs["log_dir"] == settings.get("paths.logs")


@patch("minecraft_world_manager.web.main.run_web_server")
@patch("minecraft_world_manager.__main__.log_separator")
@patch("minecraft_world_manager.__main__.setup_logging")
def test_web_start_uses_settings(mock_setup_logging, mock_separator, mock_run, app_context):
    result = CliRunner().invoke(cli, ["web", "start", "--port", "8080"])
    assert result.exit_code == 0, result.output
    mock_run.assert_called_once_with("127.0.0.1", 8080)


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "Minecraft World Manager" in result.output
