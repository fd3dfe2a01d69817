"""weave_manifest — keep persistence.xml in step with the compiled classpath."""

__all__ = [
    "__version__",
    "reconcile_manifest",
    "scan_markers",
    "PipelineConfig",
    "run_pipeline",
]
__version__ = "0.1.0"

# Programmatic entrypoints (build-tool use).
from weave_manifest.api import (  # noqa: E402, F401
    reconcile_manifest,
    scan_markers,
)
from weave_manifest.core.config import PipelineConfig  # noqa: E402, F401
from weave_manifest.core.runner import run_pipeline  # noqa: E402, F401
