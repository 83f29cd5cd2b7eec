"""httpsource: mirror remote HTTP resources as revision-addressed artifacts.

Each ``Http`` declaration names a URL.  Reconciling it downloads the
payload, identifies it by its SHA-256 digest, archives it into served
storage, and keeps a single ``Artifact`` record in step with it.
"""

__version__ = "0.1.0"

from httpsource.core.reconciler import HttpSourceReconciler
from httpsource.cli.app import app as cli

__all__ = ["HttpSourceReconciler", "cli", "__version__"]
