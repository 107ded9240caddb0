"""Declarative base and loader for generated promoted-type models.

Each promoted type gets one generated module (see entity_kb_promoter.codegen)
holding a single PromotedBase subclass. The modules live in the artifact
directory, outside any package, and are imported by path.
"""

import importlib.util
import sys
from pathlib import Path
from typing import Union

from entity_kb_common import StorageError, get_logger
from sqlalchemy.orm import DeclarativeBase

logger = get_logger(__name__)

# Module name prefix for loaded artifacts
GENERATED_MODULE_PREFIX = "entity_kb_storage.promoted.generated_"


class PromotedBase(DeclarativeBase):
    """Base class for all promoted-type models."""

    pass


def _module_name(path: Path) -> str:
    return GENERATED_MODULE_PREFIX + path.stem


def load_bindings(directory: Union[str, Path]) -> list[type[PromotedBase]]:
    """Import every generated model module in directory.

    Modules already imported in this process are reused, so calling this
    twice does not register the same table on PromotedBase.metadata twice.
    A missing directory yields no bindings.

    Returns:
        The mapped classes, in file-name order

    Raises:
        StorageError: If a module fails to import
    """
    directory = Path(directory)
    if not directory.is_dir():
        logger.info("bindings_directory_missing", directory=str(directory))
        return []

    models: list[type[PromotedBase]] = []
    for path in sorted(directory.glob("*.py")):
        if path.name.startswith("__"):
            continue

        name = _module_name(path)
        module = sys.modules.get(name)
        if module is None:
            spec = importlib.util.spec_from_file_location(name, path)
            if spec is None or spec.loader is None:
                raise StorageError(f"Cannot load generated model {path}")
            module = importlib.util.module_from_spec(spec)
            sys.modules[name] = module
            try:
                spec.loader.exec_module(module)
            except Exception as e:
                del sys.modules[name]
                logger.error("binding_load_failed", path=str(path), error=str(e))
                raise StorageError(f"Failed to load generated model {path}: {e}") from e

        for value in vars(module).values():
            if (
                isinstance(value, type)
                and issubclass(value, PromotedBase)
                and value is not PromotedBase
                and value.__module__ == name
            ):
                models.append(value)

    logger.info("bindings_loaded", directory=str(directory), count=len(models))
    return models


def promoted_table_names() -> set[str]:
    """Names of the tables registered by loaded promoted models."""
    return set(PromotedBase.metadata.tables.keys())


def include_promoted_object(obj, name, type_, reflected, compare_to) -> bool:
    """alembic include_object hook limiting autogenerate to promoted tables.

    A reflected table with no loaded model is a base table (or one promoted
    by a model that is not on disk here) and is left alone.
    """
    if type_ == "table" and reflected and compare_to is None:
        return name in promoted_table_names()
    return True


__all__ = [
    "GENERATED_MODULE_PREFIX",
    "PromotedBase",
    "include_promoted_object",
    "load_bindings",
    "promoted_table_names",
]
