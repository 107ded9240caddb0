"""Entity KB Common - Shared utilities.

This package provides:
- Settings (pydantic-settings)
- Structured logging (structlog)
- OpenTelemetry instrumentation helpers
- The error taxonomy used across the promotion pipeline
"""

from entity_kb_common.config import Settings, get_settings
from entity_kb_common.errors import (
    AuditError,
    DataCopyError,
    EntityKBError,
    GenerationError,
    NotFoundError,
    PromotionError,
    StorageError,
    ToolingError,
)
from entity_kb_common.instrumentation import (
    get_tracer,
    init_telemetry,
    instrument_function,
)
from entity_kb_common.logging_config import configure_logging, get_logger

__version__ = "0.1.0"

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Logging
    "configure_logging",
    "get_logger",
    # Instrumentation
    "init_telemetry",
    "get_tracer",
    "instrument_function",
    # Errors
    "EntityKBError",
    "StorageError",
    "AuditError",
    "PromotionError",
    "NotFoundError",
    "GenerationError",
    "ToolingError",
    "DataCopyError",
]
