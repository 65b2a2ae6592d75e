"""defrev — revision-lifecycle controller for ComponentDefinitions.

Each change to a definition's spec is captured once as an immutable,
numbered DefinitionRevision; the definition's status points at the
latest one, and old revisions are pruned down to a configured limit.
"""

__version__ = "0.1.0"

from defrev.controller.runtime import ControllerRuntime
from defrev.core.reconciler import Reconciler, ReconcileResult
from defrev.cli.app import app as cli

__all__ = ["ControllerRuntime", "Reconciler", "ReconcileResult", "cli", "__version__"]
