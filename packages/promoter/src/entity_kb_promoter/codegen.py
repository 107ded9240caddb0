"""Schema artifact generation.

Renders a SchemaDefinition into a self-contained SQLAlchemy declarative
module: one PromotedBase subclass with an integer primary key, one mapped
column per property and named CHECK constraints for the validation rules.
alembic autogenerate picks the module up from the artifact directory.

A render is parsed and compiled before anything touches the disk, and the
file is replaced atomically, so a failed generation never leaves a partial
artifact behind.
"""

import ast
import hashlib
import keyword
import math
import os
import re
import tempfile
from pathlib import Path
from typing import NamedTuple, Optional, Union

from entity_kb_common import GenerationError, get_logger
from entity_kb_contracts import (
    DataType,
    PropertyDefinition,
    SchemaDefinition,
    ValidationRule,
    ValidationRuleKind,
)

logger = get_logger(__name__)

EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

# PostgreSQL truncates identifiers longer than this
MAX_IDENTIFIER_LENGTH = 63

PRIMARY_KEY_COLUMN = "id"

_FIELD_TYPES = {
    DataType.STRING: "String",
    DataType.INTEGER: "Integer",
    DataType.NUMBER: "Float",
    DataType.BOOLEAN: "Boolean",
}

_PYTHON_TYPES = {
    "String": "str",
    "Integer": "int",
    "Float": "float",
    "Boolean": "bool",
}

# Names the rendered module binds at top level
_MODULE_NAMES = {
    "Boolean",
    "CheckConstraint",
    "Float",
    "Integer",
    "Mapped",
    "Optional",
    "PromotedBase",
    "String",
    "mapped_column",
}

# Attribute names with a meaning on declarative classes
_RESERVED_ATTRIBUTES = {"metadata", "registry", PRIMARY_KEY_COLUMN}


class CheckRule(NamedTuple):
    """A rendered CHECK constraint: rule kind plus SQL expression."""

    kind: ValidationRuleKind
    expression: str


def map_field_type(data_type: Union[DataType, str]) -> str:
    """SQLAlchemy column type name for an inferred data type.

    Unrecognised types fall back to String.
    """
    try:
        return _FIELD_TYPES[DataType(data_type)]
    except ValueError:
        return "String"


def _quote_column(column: str) -> str:
    return '"' + column.replace('"', '""') + '"'


def _sql_literal(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def _integer_bound(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _numeric_bound(value) -> Optional[Union[int, float]]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return value
    return None


def convert_validation_rules(
    column: str,
    rules: list[ValidationRule],
    data_type: Optional[DataType] = None,
) -> list[CheckRule]:
    """Render validation rules as PostgreSQL CHECK expressions.

    Unknown kinds and non-numeric bounds are skipped. When data_type is
    given, rules that cannot apply to the column type (a pattern or length
    check on a non-string column, a minimum on a non-numeric column) are
    skipped as well.
    """
    quoted = _quote_column(column)
    is_text = data_type is None or data_type == DataType.STRING
    is_numeric = data_type is None or data_type in (DataType.INTEGER, DataType.NUMBER)
    checks = []

    for rule in rules:
        if rule.kind == ValidationRuleKind.FORMAT:
            if rule.value == "email" and is_text:
                checks.append(CheckRule(rule.kind, f"{quoted} ~ {_sql_literal(EMAIL_PATTERN)}"))

        elif rule.kind == ValidationRuleKind.MIN_LENGTH:
            bound = _integer_bound(rule.value)
            if bound is not None and is_text:
                checks.append(CheckRule(rule.kind, f"char_length({quoted}) >= {bound}"))

        elif rule.kind == ValidationRuleKind.MAX_LENGTH:
            bound = _integer_bound(rule.value)
            if bound is not None and is_text:
                checks.append(CheckRule(rule.kind, f"char_length({quoted}) <= {bound}"))

        elif rule.kind == ValidationRuleKind.MINIMUM:
            bound = _numeric_bound(rule.value)
            if bound is not None and is_numeric:
                checks.append(CheckRule(rule.kind, f"{quoted} >= {bound}"))

    return checks


def rule_violations(
    value,
    rules: list[ValidationRule],
    data_type: Optional[DataType] = None,
) -> list[ValidationRuleKind]:
    """Rules a column value would fail once rendered as CHECK constraints.

    Applies exactly the checks convert_validation_rules emits, so a value
    with no violations can be inserted into the promoted table. NULL passes
    every CHECK constraint.
    """
    if value is None:
        return []

    is_text = (data_type is None or data_type == DataType.STRING) and isinstance(value, str)
    is_numeric = (
        (data_type is None or data_type in (DataType.INTEGER, DataType.NUMBER))
        and isinstance(value, (int, float))
        and not isinstance(value, bool)
    )
    failed = []

    for rule in rules:
        if rule.kind == ValidationRuleKind.FORMAT:
            if rule.value == "email" and is_text and not re.fullmatch(EMAIL_PATTERN, value):
                failed.append(rule.kind)

        elif rule.kind == ValidationRuleKind.MIN_LENGTH:
            bound = _integer_bound(rule.value)
            if bound is not None and is_text and len(value) < bound:
                failed.append(rule.kind)

        elif rule.kind == ValidationRuleKind.MAX_LENGTH:
            bound = _integer_bound(rule.value)
            if bound is not None and is_text and len(value) > bound:
                failed.append(rule.kind)

        elif rule.kind == ValidationRuleKind.MINIMUM:
            bound = _numeric_bound(rule.value)
            if bound is not None and is_numeric and value < bound:
                failed.append(rule.kind)

    return failed


def class_name_for(type_name: str) -> str:
    """CamelCase class name for a type label ("email_thread" -> "EmailThread")."""
    parts = [p for p in re.split(r"[^0-9A-Za-z]+", type_name) if p]
    name = "".join(p[0].upper() + p[1:] for p in parts)

    if not name:
        raise GenerationError(f"Cannot derive a class name from type label {type_name!r}")
    if name[0].isdigit():
        name = "Type" + name
    if keyword.iskeyword(name) or name in _MODULE_NAMES:
        name += "Model"
    return name


def table_name_for(type_name: str) -> str:
    return type_name.lower() + "s"


def artifact_filename(type_name: str) -> str:
    """File name of the artifact for a type label (lower-cased label + .py)."""
    stem = type_name.lower()
    if not stem or stem.startswith(".") or stem.startswith("__") or "/" in stem or "\\" in stem:
        raise GenerationError(f"Type label {type_name!r} cannot be used as a file name")
    return stem + ".py"


def attribute_name_for(property_name: str) -> str:
    """Python attribute name for a property; the column keeps the raw name."""
    name = re.sub(r"\W", "_", property_name)
    if name[:1].isdigit() or name.startswith("__"):
        name = "f_" + name
    if keyword.iskeyword(name) or name in _RESERVED_ATTRIBUTES or name in _MODULE_NAMES:
        name += "_"
    if not name.isidentifier():
        raise GenerationError(f"Property {property_name!r} has no valid attribute name")
    return name


def _constraint_name(table: str, attribute: str, kind: ValidationRuleKind) -> str:
    suffix = re.sub(r"(?<!^)(?=[A-Z])", "_", kind.value).lower()
    name = f"ck_{table}_{attribute}_{suffix}"
    if len(name) > MAX_IDENTIFIER_LENGTH:
        digest = hashlib.sha1(name.encode("utf-8")).hexdigest()[:8]
        name = f"{name[:MAX_IDENTIFIER_LENGTH - 9]}_{digest}"
    return name


def _column_line(column: str, attribute: str, prop: PropertyDefinition) -> tuple[str, str]:
    field_type = map_field_type(prop.data_type)
    python_type = _PYTHON_TYPES[field_type]
    annotation = python_type if prop.required else f"Optional[{python_type}]"
    nullable = "False" if prop.required else "True"
    line = (
        f"    {attribute}: Mapped[{annotation}] = "
        f"mapped_column({column!r}, {field_type}, nullable={nullable})"
    )
    return line, field_type


def render_model_source(schema: SchemaDefinition) -> str:
    """Render the model module for a schema.

    Raises:
        GenerationError: If the schema has no properties, uses the reserved
            "id" property, or two properties map to the same attribute
    """
    if not schema.properties:
        raise GenerationError(f"Schema for {schema.type_name} has no properties")
    if PRIMARY_KEY_COLUMN in schema.properties:
        raise GenerationError(
            f"Schema for {schema.type_name} defines reserved property {PRIMARY_KEY_COLUMN!r}"
        )

    class_name = class_name_for(schema.type_name)
    table = table_name_for(schema.type_name)

    columns = []
    constraints = []
    field_types = {"Integer"}
    attributes: dict[str, str] = {}

    for column in sorted(schema.properties):
        prop = schema.properties[column]
        attribute = attribute_name_for(column)
        if attribute in attributes:
            raise GenerationError(
                f"Properties {attributes[attribute]!r} and {column!r} both map to attribute {attribute!r}"
            )
        attributes[attribute] = column

        line, field_type = _column_line(column, attribute, prop)
        columns.append(line)
        field_types.add(field_type)

        for check in convert_validation_rules(column, prop.validation_rules, prop.data_type):
            name = _constraint_name(table, attribute, check.kind)
            constraints.append(f"        CheckConstraint({check.expression!r}, name={name!r}),")

    needs_optional = any(not p.required for p in schema.properties.values())
    sqlalchemy_names = sorted(field_types | ({"CheckConstraint"} if constraints else set()))

    lines = [
        f'"""Promoted model for discovered type {schema.type_name!r}.',
        "",
        "Generated by entity-kb promote. Do not edit by hand.",
        '"""',
        "",
    ]
    if needs_optional:
        lines += ["from typing import Optional", ""]
    lines += [
        f"from sqlalchemy import {', '.join(sqlalchemy_names)}",
        "from sqlalchemy.orm import Mapped, mapped_column",
        "",
        "from entity_kb_storage.promoted import PromotedBase",
        "",
        "",
        f"class {class_name}(PromotedBase):",
        f"    __tablename__ = {table!r}",
    ]
    if constraints:
        lines += ["    __table_args__ = ("] + constraints + ["    )"]
    lines += [
        "",
        f"    {PRIMARY_KEY_COLUMN}: Mapped[int] = mapped_column(Integer, primary_key=True)",
    ]
    lines += columns

    return "\n".join(lines) + "\n"


def validate_source(source: str, filename: str = "<generated>") -> None:
    """Parse and compile rendered source.

    Raises:
        GenerationError: If the source is not valid Python
    """
    try:
        tree = ast.parse(source, filename=filename)
        compile(tree, filename, "exec")
    except SyntaxError as e:
        raise GenerationError(f"Generated model {filename} is not valid Python: {e}") from e


def write_model_file(schema: SchemaDefinition, output_dir: Union[str, Path]) -> Path:
    """Render, validate and atomically write the artifact for a schema.

    An existing artifact for the same type is replaced.

    Returns:
        Path of the written artifact

    Raises:
        GenerationError: If rendering, validation or writing fails
    """
    filename = artifact_filename(schema.type_name)
    source = render_model_source(schema)
    validate_source(source, filename)

    output_dir = Path(output_dir)
    target = output_dir / filename
    tmp_path = None

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=output_dir, prefix=f".{filename}.", suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(source)
        os.replace(tmp_path, target)
        tmp_path = None
    except OSError as e:
        logger.error("artifact_write_failed", path=str(target), error=str(e))
        raise GenerationError(f"Failed to write artifact {target}: {e}") from e
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)

    logger.info(
        "artifact_written",
        type_name=schema.type_name,
        path=str(target),
        columns=len(schema.properties),
    )
    return target
