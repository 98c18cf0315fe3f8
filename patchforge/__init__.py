"""patchforge: nightly build aggregation and release-patch pull requests.

Watches build artifacts arrive one by one, waits until every artifact of
a release bundle has a checksum, then patches the bundle's descriptor
files on a scratch branch, commits, and opens a pull request upstream.
"""

__version__ = "0.1.0"
__description__ = "Build-completion aggregator and release-patch orchestrator"

from patchforge.catalog import BundleCatalog, default_catalog
from patchforge.core.acceptor import Acceptor
from patchforge.core.orchestrator import ChangesetOrchestrator
from patchforge.core.tracker import ReadinessTracker

__all__ = [
    "Acceptor",
    "BundleCatalog",
    "ChangesetOrchestrator",
    "ReadinessTracker",
    "default_catalog",
    "__version__",
]
