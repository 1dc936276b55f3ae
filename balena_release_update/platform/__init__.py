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

"""Platform access for balena-release-update.

Public API:

- PlatformClient: Protocol the update engine depends on
- ApiClient: PlatformClient implementation over the REST API
- make_session: requests session with transport-level retries
- Release, Image, Delta, DeltaTrigger: Platform records

"""

from .client import ApiClient, PlatformClient, odata_datetime
from .models import Delta, DeltaTrigger, Image, Release
from .session import make_session

__all__ = [
    "ApiClient",
    "PlatformClient",
    "odata_datetime",
    "make_session",
    "Release",
    "Image",
    "Delta",
    "DeltaTrigger",
]
