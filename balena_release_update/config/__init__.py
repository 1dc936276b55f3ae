# Copyright 2025 balena-release-update contributors
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

"""Platform settings for balena-release-update.

Settings are merged from built-in defaults, ~/.balenarc.yml, ./.balenarc.yml,
an optional explicit file and environment variables (last wins).

Public API:

- load_settings: Resolve the effective PlatformSettings
- PlatformSettings: API/delta URLs, token and request timeout

Example:
    Basic usage:

        from balena_release_update.config import load_settings

        settings = load_settings()
        print(settings.api_url)  # "https://api.balena-cloud.com"

"""

from .loader import PlatformSettings, load_settings

__all__ = ["PlatformSettings", "load_settings"]
