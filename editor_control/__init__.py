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

"""editor-control - local control plane for a running code editor.

An editor instance exposes its command registry and developer tools over a
loopback HTTP API and a WebSocket; clients drive it with correlated requests.
"""

__version__ = "0.1.0"

from editor_control.client.client import EditorControlClient
from editor_control.config.settings import Settings, load_settings
from editor_control.service import EditorControlService

__all__ = [
    "EditorControlClient",
    "EditorControlService",
    "Settings",
    "__version__",
    "load_settings",
]
