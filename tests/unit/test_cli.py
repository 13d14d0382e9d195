# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for the editor-control CLI."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from editor_control import __version__
from editor_control.core.errors import HostCommandError
from editor_control.core.instance import EditorInstance, EditorType
from editor_control.ui.cli import app, parse_args

runner = CliRunner()


@pytest.fixture
def fake_client():
    """Patch the client class used by the CLI and return the client instance."""
    client = MagicMock()
    client.get_instance_info = AsyncMock(
        return_value=EditorInstance(
            id="instance-1",
            machine_id="machine-1",
            session_id="session-1",
            workspace_folders=("/work",),
            type=EditorType.CURSOR,
            start_time=1,
            last_heartbeat=2,
        )
    )
    client.list_commands = AsyncMock(return_value=["demo.echo", "editor.action.selectAll"])
    client.execute_command = AsyncMock(return_value={"ok": True})
    client.execute_command_ws = AsyncMock(return_value=None)
    client.connect = AsyncMock()
    client.toggle_devtools = AsyncMock(return_value=True)
    client.toggle_devtools_ws = AsyncMock(return_value=False)
    client.execute_in_devtools = AsyncMock(return_value="Script execution started")

    with patch("editor_control.ui.cli.EditorControlClient") as client_cls:
        client_cls.return_value.__aenter__.return_value = client
        yield client


class TestClientCommands:
    """Tests for commands that talk to a running editor."""

    def test_instances(self, fake_client):
        result = runner.invoke(app, ["instances"])

        assert result.exit_code == 0
        assert "instance-1" in result.output
        assert "cursor" in result.output

    def test_commands_filter(self, fake_client):
        result = runner.invoke(app, ["commands", "--filter", "ECHO"])

        assert result.exit_code == 0
        assert "demo.echo" in result.output
        assert "selectAll" not in result.output

    def test_exec_over_http_with_json_args(self, fake_client):
        result = runner.invoke(app, ["exec", "demo.echo", "1", '"two"', '{"a": 3}'])

        assert result.exit_code == 0
        fake_client.execute_command.assert_awaited_once_with("demo.echo", [1, "two", {"a": 3}])
        assert '"ok": true' in result.output

    def test_exec_over_websocket(self, fake_client):
        result = runner.invoke(app, ["exec", "editor.action.selectAll", "--ws"])

        assert result.exit_code == 0
        fake_client.connect.assert_awaited_once()
        fake_client.execute_command_ws.assert_awaited_once_with("editor.action.selectAll", [])
        assert "null" in result.output

    def test_exec_invalid_json_arg(self, fake_client):
        result = runner.invoke(app, ["exec", "demo.echo", "{oops"])

        assert result.exit_code == 2
        fake_client.execute_command.assert_not_awaited()

    def test_exec_error_exit_code(self, fake_client):
        fake_client.execute_command.side_effect = HostCommandError("command 'x' not found")
        result = runner.invoke(app, ["exec", "x"])

        assert result.exit_code == 1
        assert "command 'x' not found" in result.output

    def test_devtools_toggle(self, fake_client):
        result = runner.invoke(app, ["devtools", "toggle"])
        assert result.exit_code == 0
        assert "open" in result.output

        result = runner.invoke(app, ["devtools", "toggle", "--ws"])
        assert result.exit_code == 0
        assert "closed" in result.output

    def test_devtools_exec(self, fake_client):
        result = runner.invoke(app, ["devtools", "exec", "console.log(1)"])

        assert result.exit_code == 0
        fake_client.execute_in_devtools.assert_awaited_once_with("console.log(1)")
        assert "Script execution started" in result.output


class TestGlobalOptions:
    """Tests for logging and configuration options."""

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert __version__ in result.output

    @pytest.mark.parametrize(
        "given, expected",
        [("DEBUG", logging.DEBUG), ("info", logging.INFO), ("WARN", logging.WARNING)],
    )
    def test_log_level(self, given, expected):
        with patch("editor_control.ui.cli.logging.basicConfig") as basic_config:
            runner.invoke(app, ["--log-level", given, "version"])

        assert basic_config.call_args.kwargs["level"] == expected

    def test_invalid_log_level(self):
        result = runner.invoke(app, ["--log-level", "LOUD", "version"])
        assert result.exit_code == 2
        assert "Invalid configuration" in result.output

    def test_config_file(self, tmp_path, fake_client):
        config = tmp_path / "config.yaml"
        config.write_text("api_port: 4555\n")

        with patch("editor_control.ui.cli.EditorControlClient") as client_cls:
            client_cls.return_value.__aenter__.return_value = fake_client
            runner.invoke(app, ["--config", str(config), "instances"])

        settings = client_cls.call_args.args[0]
        assert settings.api_port == 4555


class TestServe:
    """Tests for the serve command."""

    def test_bind_failure(self):
        with patch("editor_control.ui.cli.EditorControlService") as service_cls:
            service_cls.return_value.__aenter__.side_effect = OSError("address in use")
            result = runner.invoke(app, ["serve"])

        assert result.exit_code == 1
        assert "address in use" in result.output


def test_parse_args():
    assert parse_args(["1", "true", "null", '"s"']) == [1, True, None, "s"]
    assert parse_args(None) == []
