"""
balena-release-update

Describe and prepare the update path between two releases of a fleet,
using binary deltas between service images instead of full downloads.

balena-release-update provides:
  - Per-service diff of the images of two releases
  - Delta lookup with staleness handling for abandoned computations
  - Overall readiness and estimated download size
  - Delta generation requests for services that need one
  - Bounded waiting until the whole update is ready

Quick Start
-----------
Describe the update path:

    $ balena-release-update --from-release 900813 --to-release 900835

Request missing deltas and wait up to ten minutes:

    $ balena-release-update --from-release 900813 --to-release 900835 --timeout 600

For full CLI documentation:

    $ balena-release-update --help

Package Structure
-----------------
cli : module
    Command-line interface with argparse.
core : module
    High-level get_update_info / prepare_update.
config : package
    Platform settings from .balenarc.yml files and the environment.
platform : package
    Platform client protocol and REST implementation.
update : package
    Service diff, resolution, delta requests and readiness polling.
status : module
    Ordered update status and aggregation.

Public API
----------
    from balena_release_update.core import get_update_info, prepare_update
    from balena_release_update.config import load_settings
    from balena_release_update.platform import ApiClient
    from balena_release_update.status import UpdateStatus
"""

__version__ = "0.2.0"
__license__ = "Apache-2.0"
__description__ = "Describe and prepare delta updates between fleet releases"

# Re-export commonly used functions for convenience
from balena_release_update.config import load_settings
from balena_release_update.core import get_update_info, prepare_update
from balena_release_update.platform import ApiClient
from balena_release_update.results import ReleaseUpdate, ServiceUpdate
from balena_release_update.status import UpdateStatus

__all__ = [
    "__version__",
    "__license__",
    "__description__",
    "get_update_info",
    "prepare_update",
    "load_settings",
    "ApiClient",
    "ReleaseUpdate",
    "ServiceUpdate",
    "UpdateStatus",
]
