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

"""HTTP session factory for the platform API.

Retries live here, at the transport layer, so the update engine itself
never retries: a request that still fails after the session gave up is
reported to the caller as a TransientPlatformError.

Notes:
- 504 is deliberately absent from the retried statuses. The delta service
  answers 504 while a delta is being computed, and that answer has to
  reach the client.
- Only idempotent methods are retried.
"""

from __future__ import annotations

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from balena_release_update import __version__

RETRY_STATUSES = (429, 500, 502, 503)


def make_session(total_retries: int = 3, backoff_factor: float = 0.5) -> requests.Session:
    """
    Create a requests.Session with retry/backoff defaults.

    - Retries on common transient status codes (except 504, see module notes).
    - Applies exponential backoff.
    - Sets a User-Agent identifying this tool.
    """
    s = requests.Session()
    retries = Retry(
        total=total_retries,
        backoff_factor=backoff_factor,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=("GET", "HEAD"),
        raise_on_status=False,
    )
    s.headers.update(
        {
            "User-Agent": f"balena-release-update/{__version__}",
            "Accept": "application/json",
        }
    )
    s.mount("http://", HTTPAdapter(max_retries=retries))
    s.mount("https://", HTTPAdapter(max_retries=retries))
    return s
