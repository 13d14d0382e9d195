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

"""Shared pytest fixtures and configuration."""

import os

import pytest

from editor_control.api.dispatcher import CommandDispatcher
from editor_control.config.settings import Settings
from editor_control.core.instance import HostMetadata, InstanceRegistry
from editor_control.core.store import MemoryStateStore
from editor_control.host.demo import create_demo_host


@pytest.fixture(autouse=True)
def isolate_environment_variables(monkeypatch, tmp_path):
    """Isolate tests from EDITOR_CONTROL_* variables, .env and config files."""
    for var in list(os.environ):
        if var.startswith("EDITOR_CONTROL_"):
            monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("EDITOR_CONTROL_SKIP_ENV_FILE", "1")
    monkeypatch.setenv("EDITOR_CONTROL_CONFIG_FILE", str(tmp_path / "no-config.yaml"))


@pytest.fixture
def host():
    """Demo command host with no devtools open delay."""
    return create_demo_host(open_delay=0)


@pytest.fixture
def metadata():
    return HostMetadata(
        app_name="Visual Studio Code",
        machine_id="machine-1",
        session_id="session-1",
        workspace_folders=["/work/project"],
    )


@pytest.fixture
def instance_registry(metadata):
    store = MemoryStateStore({"instanceId": "instance-1"})
    return InstanceRegistry.create(metadata, store, clock=lambda: 1_000)


@pytest.fixture
def dispatcher(host, instance_registry):
    return CommandDispatcher(host, instance_registry)


@pytest.fixture
def fast_settings(tmp_path):
    """Settings with ephemeral ports and short timers."""
    return Settings(
        api_port=0,
        ws_port=0,
        request_timeout=2.0,
        heartbeat_interval=0.05,
        reconnect_interval=0.05,
        max_reconnect_attempts=3,
        instance_heartbeat_interval=0.05,
        devtools_open_delay=0,
        state_file=tmp_path / "state.json",
    )
