"""Application services: extraction, reconciliation, sync and validation."""

from .plot_extractor import (  # noqa: F401
    PlotExtractionConfig,
    PlotExtractor,
    load_extraction_config,
)
from .reconciler import DraftReconciler  # noqa: F401
from .sync_service import SyncService  # noqa: F401
from .validation_service import PlotValidationService  # noqa: F401
