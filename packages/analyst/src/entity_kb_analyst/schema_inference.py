"""Schema inference from sampled discovered entities.

Given the property maps of up to SAMPLE_LIMIT entities of one type:
- a property present in >= 90% of samples is required
- a property present in [30%, 90%) of samples is optional
- anything rarer is noise and dropped

Presence means the key exists, whatever its value.
"""

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from entity_kb_common import NotFoundError, get_logger, instrument_function
from entity_kb_contracts import (
    DataType,
    PropertyDefinition,
    SchemaDefinition,
    ValidationRule,
    ValidationRuleKind,
    ValueKind,
    classify_value,
)
from entity_kb_storage import EntityStore

logger = get_logger(__name__)

REQUIRED_THRESHOLD = 0.90
OPTIONAL_MIN = 0.30
OPTIONAL_MAX = 0.90
SAMPLE_LIMIT = 1000

STRING_MIN_LENGTH = 1
STRING_MAX_LENGTH = 100
INTEGER_MINIMUM = 0

PropertySample = Mapping[str, Any]


def _presence_ratios(samples: Sequence[PropertySample]) -> dict[str, float]:
    counts: Counter[str] = Counter()
    for sample in samples:
        counts.update(sample.keys())
    total = len(samples)
    return {prop: count / total for prop, count in counts.items()}


def infer_required_properties(
    samples: Sequence[PropertySample], threshold: float = REQUIRED_THRESHOLD
) -> list[str]:
    """Properties whose presence ratio is >= threshold, sorted by name."""
    if not samples:
        return []
    return sorted(p for p, ratio in _presence_ratios(samples).items() if ratio >= threshold)


def infer_optional_properties(
    samples: Sequence[PropertySample],
    min_threshold: float = OPTIONAL_MIN,
    max_threshold: float = OPTIONAL_MAX,
) -> list[str]:
    """Properties with min_threshold <= presence ratio < max_threshold, sorted by name."""
    if not samples:
        return []
    return sorted(
        p
        for p, ratio in _presence_ratios(samples).items()
        if min_threshold <= ratio < max_threshold
    )


def infer_data_type(values: Iterable[Any]) -> DataType:
    """Infer a scalar type from sample values.

    Nulls are ignored. Boolean only when every remaining sample is boolean;
    otherwise any float gives number, any int gives integer, and everything
    else (strings, structured values, no samples) gives string.
    """
    kinds = {classify_value(v) for v in values} - {ValueKind.NULL}

    if not kinds:
        return DataType.STRING
    if kinds == {ValueKind.BOOLEAN}:
        return DataType.BOOLEAN
    if ValueKind.NUMBER in kinds:
        return DataType.NUMBER
    if ValueKind.INTEGER in kinds:
        return DataType.INTEGER
    return DataType.STRING


def generate_validation_rules(property_name: str, data_type: DataType) -> list[ValidationRule]:
    """Name- and type-driven validation rules, in a fixed order."""
    rules = []
    is_email = "email" in property_name.lower()

    if is_email:
        rules.append(ValidationRule(kind=ValidationRuleKind.FORMAT, value="email"))

    if data_type == DataType.STRING:
        rules.append(ValidationRule(kind=ValidationRuleKind.MIN_LENGTH, value=STRING_MIN_LENGTH))
        if not is_email:
            rules.append(
                ValidationRule(kind=ValidationRuleKind.MAX_LENGTH, value=STRING_MAX_LENGTH)
            )

    if data_type == DataType.INTEGER:
        rules.append(ValidationRule(kind=ValidationRuleKind.MINIMUM, value=INTEGER_MINIMUM))

    return rules


def generate_schema(type_name: str, samples: Sequence[PropertySample]) -> SchemaDefinition:
    """Infer a SchemaDefinition; properties are sorted by name."""
    required = set(infer_required_properties(samples, REQUIRED_THRESHOLD))
    optional = set(infer_optional_properties(samples, OPTIONAL_MIN, OPTIONAL_MAX))

    properties = {}
    for prop in sorted(required | optional):
        data_type = infer_data_type(sample[prop] for sample in samples if prop in sample)
        properties[prop] = PropertyDefinition(
            data_type=data_type,
            required=prop in required,
            validation_rules=generate_validation_rules(prop, data_type),
        )

    return SchemaDefinition(type_name=type_name, properties=properties)


@instrument_function("infer_schema")
async def generate_schema_for_type(
    type_name: str,
    sample_limit: int = SAMPLE_LIMIT,
    entity_source: Any = EntityStore,
) -> SchemaDefinition:
    """Sample stored entities of one type and infer their schema.

    Raises:
        NotFoundError: If no entities of the type exist
    """
    entities = await entity_source.list_by_type(type_name, limit=sample_limit)
    if not entities:
        logger.warning("schema_inference_no_entities", type_name=type_name)
        raise NotFoundError(f"No entities found for type: {type_name}")

    schema = generate_schema(type_name, [e.properties for e in entities])

    logger.info(
        "schema_inferred",
        type_name=type_name,
        samples=len(entities),
        properties=len(schema.properties),
        required=len(schema.required_properties()),
    )
    return schema
