"""Tests for schema artifact generation."""

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateTable

from entity_kb_common import GenerationError
from entity_kb_contracts import (
    DataType,
    PropertyDefinition,
    SchemaDefinition,
    ValidationRule,
    ValidationRuleKind,
)
from entity_kb_promoter.codegen import (
    EMAIL_PATTERN,
    artifact_filename,
    attribute_name_for,
    class_name_for,
    convert_validation_rules,
    map_field_type,
    render_model_source,
    rule_violations,
    table_name_for,
    validate_source,
    write_model_file,
)
from entity_kb_storage.promoted import load_bindings


def _rule(kind, value):
    return ValidationRule(kind=kind, value=value)


def _person_schema(type_name="person"):
    return SchemaDefinition(
        type_name=type_name,
        properties={
            "email": PropertyDefinition(
                data_type=DataType.STRING,
                required=True,
                validation_rules=[
                    _rule(ValidationRuleKind.FORMAT, "email"),
                    _rule(ValidationRuleKind.MIN_LENGTH, 1),
                ],
            ),
            "name": PropertyDefinition(
                data_type=DataType.STRING,
                required=True,
                validation_rules=[
                    _rule(ValidationRuleKind.MIN_LENGTH, 1),
                    _rule(ValidationRuleKind.MAX_LENGTH, 100),
                ],
            ),
            "age": PropertyDefinition(
                data_type=DataType.INTEGER,
                required=False,
                validation_rules=[_rule(ValidationRuleKind.MINIMUM, 0)],
            ),
            "active": PropertyDefinition(data_type=DataType.BOOLEAN, required=False),
        },
    )


class TestFieldTypes:
    @pytest.mark.parametrize(
        "data_type,expected",
        [
            (DataType.STRING, "String"),
            (DataType.INTEGER, "Integer"),
            (DataType.NUMBER, "Float"),
            (DataType.BOOLEAN, "Boolean"),
            ("integer", "Integer"),
            ("array", "String"),
        ],
    )
    def test_map_field_type(self, data_type, expected):
        assert map_field_type(data_type) == expected


class TestConvertValidationRules:
    def test_all_rule_kinds(self):
        checks = convert_validation_rules(
            "email",
            [
                _rule(ValidationRuleKind.FORMAT, "email"),
                _rule(ValidationRuleKind.MIN_LENGTH, 1),
                _rule(ValidationRuleKind.MAX_LENGTH, 100),
                _rule(ValidationRuleKind.MINIMUM, 0),
            ],
        )

        assert [c.expression for c in checks] == [
            f"\"email\" ~ '{EMAIL_PATTERN}'",
            'char_length("email") >= 1',
            'char_length("email") <= 100',
            '"email" >= 0',
        ]

    def test_unknown_format_and_non_numeric_bounds_skipped(self):
        checks = convert_validation_rules(
            "x",
            [
                _rule(ValidationRuleKind.FORMAT, "uri"),
                _rule(ValidationRuleKind.MIN_LENGTH, "one"),
                _rule(ValidationRuleKind.MINIMUM, "zero"),
            ],
        )

        assert checks == []

    def test_integral_float_length_accepted(self):
        [check] = convert_validation_rules("x", [_rule(ValidationRuleKind.MAX_LENGTH, 100.0)])

        assert check.expression == 'char_length("x") <= 100'

    def test_rules_that_cannot_apply_to_column_type_skipped(self):
        rules = [
            _rule(ValidationRuleKind.FORMAT, "email"),
            _rule(ValidationRuleKind.MINIMUM, 0),
        ]

        integer_checks = convert_validation_rules("email_count", rules, DataType.INTEGER)
        string_checks = convert_validation_rules("email", rules, DataType.STRING)

        assert [c.kind for c in integer_checks] == [ValidationRuleKind.MINIMUM]
        assert [c.kind for c in string_checks] == [ValidationRuleKind.FORMAT]

    def test_column_quotes_escaped(self):
        [check] = convert_validation_rules('we"ird', [_rule(ValidationRuleKind.MINIMUM, 0)])

        assert check.expression == '"we""ird" >= 0'


class TestRuleViolations:
    RULES = [
        _rule(ValidationRuleKind.FORMAT, "email"),
        _rule(ValidationRuleKind.MIN_LENGTH, 1),
        _rule(ValidationRuleKind.MAX_LENGTH, 100),
        _rule(ValidationRuleKind.MINIMUM, 0),
    ]

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("jeff.skilling@enron.com", []),
            ("", [ValidationRuleKind.FORMAT, ValidationRuleKind.MIN_LENGTH]),
            ("jeff at enron", [ValidationRuleKind.FORMAT]),
            ("a@enron.com\n", [ValidationRuleKind.FORMAT]),
            ("x" * 90 + "@enron.com", []),
            ("x" * 91 + "@enron.com", [ValidationRuleKind.MAX_LENGTH]),
        ],
    )
    def test_text_values(self, value, expected):
        assert rule_violations(value, self.RULES, DataType.STRING) == expected

    @pytest.mark.parametrize("value,expected", [(0, []), (-1, [ValidationRuleKind.MINIMUM])])
    def test_numeric_values(self, value, expected):
        assert rule_violations(value, self.RULES, DataType.INTEGER) == expected

    def test_null_passes_every_rule(self):
        assert rule_violations(None, self.RULES, DataType.STRING) == []

    def test_title_longer_than_limit(self):
        rules = [_rule(ValidationRuleKind.MAX_LENGTH, 100)]

        assert rule_violations("t" * 100, rules, DataType.STRING) == []
        assert rule_violations("t" * 150, rules, DataType.STRING) == [
            ValidationRuleKind.MAX_LENGTH
        ]

    def test_rules_without_checks_never_fail(self):
        rules = [
            _rule(ValidationRuleKind.FORMAT, "uri"),
            _rule(ValidationRuleKind.MAX_LENGTH, "short"),
        ]

        assert rule_violations("not a uri" * 50, rules, DataType.STRING) == []
        assert rule_violations(-5, [_rule(ValidationRuleKind.MIN_LENGTH, 1)], DataType.INTEGER) == []


class TestNaming:
    @pytest.mark.parametrize(
        "label,expected",
        [
            ("person", "Person"),
            ("email_thread", "EmailThread"),
            ("3d-model", "Type3dModel"),
            ("string", "StringModel"),
            ("none", "NoneModel"),
        ],
    )
    def test_class_name_for(self, label, expected):
        assert class_name_for(label) == expected

    def test_class_name_requires_alphanumerics(self):
        with pytest.raises(GenerationError):
            class_name_for("---")

    def test_table_and_file_names(self):
        assert table_name_for("Person") == "persons"
        assert artifact_filename("Person") == "person.py"

    @pytest.mark.parametrize("label", ["../evil", ".hidden", "__init__", "a/b"])
    def test_unsafe_file_names_rejected(self, label):
        with pytest.raises(GenerationError):
            artifact_filename(label)

    @pytest.mark.parametrize(
        "prop,expected",
        [
            ("email", "email"),
            ("first-name", "first_name"),
            ("2fa", "f_2fa"),
            ("class", "class_"),
            ("metadata", "metadata_"),
            ("__tablename__", "f___tablename__"),
        ],
    )
    def test_attribute_name_for(self, prop, expected):
        assert attribute_name_for(prop) == expected

    def test_empty_property_name_rejected(self):
        with pytest.raises(GenerationError):
            attribute_name_for("")


class TestRenderModelSource:
    def test_render_is_valid_python(self):
        source = render_model_source(_person_schema())

        validate_source(source)
        assert "class Person(PromotedBase):" in source
        assert "__tablename__ = 'persons'" in source
        assert "id: Mapped[int] = mapped_column(Integer, primary_key=True)" in source

    def test_required_and_optional_columns(self):
        source = render_model_source(_person_schema())

        assert "email: Mapped[str] = mapped_column('email', String, nullable=False)" in source
        assert "age: Mapped[Optional[int]] = mapped_column('age', Integer, nullable=True)" in source
        assert "active: Mapped[Optional[bool]] = mapped_column('active', Boolean, nullable=True)" in source
        assert "from typing import Optional" in source

    def test_columns_in_name_order(self):
        source = render_model_source(_person_schema())

        positions = [source.index(f"    {name}: Mapped") for name in ["active", "age", "email", "name"]]
        assert positions == sorted(positions)

    def test_no_constraints_no_table_args(self):
        schema = SchemaDefinition(
            type_name="flag",
            properties={"active": PropertyDefinition(data_type=DataType.BOOLEAN, required=True)},
        )

        source = render_model_source(schema)

        assert "__table_args__" not in source
        assert "CheckConstraint" not in source
        assert "Optional" not in source
        validate_source(source)

    def test_empty_schema_rejected(self):
        with pytest.raises(GenerationError, match="no properties"):
            render_model_source(SchemaDefinition(type_name="empty"))

    def test_reserved_id_property_rejected(self):
        schema = SchemaDefinition(
            type_name="thing",
            properties={"id": PropertyDefinition(data_type=DataType.STRING)},
        )

        with pytest.raises(GenerationError, match="reserved"):
            render_model_source(schema)

    def test_attribute_collision_rejected(self):
        schema = SchemaDefinition(
            type_name="thing",
            properties={
                "first-name": PropertyDefinition(data_type=DataType.STRING),
                "first_name": PropertyDefinition(data_type=DataType.STRING),
            },
        )

        with pytest.raises(GenerationError, match="first_name"):
            render_model_source(schema)

    def test_loaded_model_emits_postgres_constraints(self, tmp_path):
        write_model_file(_person_schema("codegenperson"), tmp_path)

        [model] = load_bindings(tmp_path)
        ddl = str(CreateTable(model.__table__).compile(dialect=postgresql.dialect()))

        assert model.__tablename__ == "codegenpersons"
        assert "email VARCHAR NOT NULL" in ddl
        assert "ck_codegenpersons_email_format" in ddl
        assert 'CHECK (char_length("name") <= 100)' in ddl
        assert 'CHECK ("age" >= 0)' in ddl


class TestValidateSource:
    def test_syntax_error_becomes_generation_error(self):
        with pytest.raises(GenerationError, match="not valid Python"):
            validate_source("class (:\n")


class TestWriteModelFile:
    def test_writes_artifact(self, tmp_path):
        path = write_model_file(_person_schema(), tmp_path / "models")

        assert path == tmp_path / "models" / "person.py"
        assert path.read_text() == render_model_source(_person_schema())

    def test_overwrite_is_idempotent(self, tmp_path):
        first = write_model_file(_person_schema(), tmp_path)
        content = first.read_text()

        second = write_model_file(_person_schema(), tmp_path)

        assert first == second
        assert second.read_text() == content
        assert sorted(p.name for p in tmp_path.iterdir()) == ["person.py"]

    def test_failed_generation_leaves_existing_artifact(self, tmp_path):
        path = write_model_file(_person_schema(), tmp_path)
        original = path.read_text()
        broken = SchemaDefinition(
            type_name="person",
            properties={"id": PropertyDefinition(data_type=DataType.INTEGER)},
        )

        with pytest.raises(GenerationError):
            write_model_file(broken, tmp_path)

        assert path.read_text() == original
        assert sorted(p.name for p in tmp_path.iterdir()) == ["person.py"]

    def test_failed_generation_writes_nothing(self, tmp_path):
        with pytest.raises(GenerationError):
            write_model_file(SchemaDefinition(type_name="empty"), tmp_path)

        assert list(tmp_path.iterdir()) == []
