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

"""Update engine for balena-release-update.

This package resolves, prepares and waits for release-to-release updates:

- diff: Per-service update records (Service Diff Engine)
- resolver: Whole-release resolution (Update Resolver)
- requester: Delta generation triggers (Delta Requester)
- poller: Bounded wait for readiness (Readiness Poller)
- fanout: Join-all helper used for concurrent lookups

Every operation takes the platform client explicitly; there is no
process-wide default client in here.
"""

from .diff import DELTA_VERSION, STALE_DELTA_WINDOW, resolve_service_update
from .fanout import run_all
from .poller import DEFAULT_WAIT, POLL_INTERVAL, wait_for_readiness
from .requester import DeltaRequest, request_pending_deltas
from .resolver import normalize_release_identifier, resolve_release_update

__all__ = [
    "DELTA_VERSION",
    "STALE_DELTA_WINDOW",
    "DEFAULT_WAIT",
    "POLL_INTERVAL",
    "DeltaRequest",
    "normalize_release_identifier",
    "request_pending_deltas",
    "resolve_release_update",
    "resolve_service_update",
    "run_all",
    "wait_for_readiness",
]
