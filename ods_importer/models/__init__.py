"""Domain models for the ODS -> PostgreSQL importer."""

from .config_models import DatabaseConfig, ImportConfig, LoadOptions
from .error_record import ErrorRecord
from .processing_result import BatchStatsAccumulator, LoadResult

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    "LoadOptions",
    # Result models
    "ErrorRecord",
    "LoadResult",
    "BatchStatsAccumulator",
]
