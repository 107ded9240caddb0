"""Error taxonomy for the entity-kb schema-evolution pipeline.

Promotion aborts derive from PromotionError so the orchestrator can turn
them into a failed PromotionResult. Anything else is unexpected and
propagates (after the audit record has been written).
"""


class EntityKBError(Exception):
    """Base exception for all entity-kb errors."""

    pass


class StorageError(EntityKBError):
    """Error during database operations."""

    pass


class AuditError(StorageError):
    """The SchemaPromotion audit record could not be written."""

    pass


class PromotionError(EntityKBError):
    """A promotion attempt was aborted."""

    pass


class NotFoundError(PromotionError):
    """No discovered entities exist for the requested type."""

    pass


class GenerationError(PromotionError):
    """Schema artifact rendering or syntax validation failed."""

    pass


class ToolingError(PromotionError):
    """External code-generation or migration tooling failed."""

    def __init__(self, message: str, command: str = "", output: str = ""):
        super().__init__(message)
        self.command = command
        self.output = output


class DataCopyError(PromotionError):
    """Transactional copy into the promoted table failed and was rolled back."""

    pass
