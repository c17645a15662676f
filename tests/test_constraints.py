from api_spec_builder.builder.constraints import (
    Constraints,
    apply_constraints_to_parameter,
    apply_constraints_to_schema,
    apply_type_format_overrides,
    apply_type_format_to_oas2_parameter,
    validate_constraints,
)
from api_spec_builder.builder.errors import ConstraintErrors
from api_spec_builder.document.base import Parameter, Schema


class TestValidateConstraints:
    def test_valid_set(self):
        c = Constraints(minimum=1, maximum=10, min_length=0, max_length=5, pattern="^[a-z]+$")
        assert validate_constraints(c) == []

    def test_all_violations_reported(self):
        c = Constraints(minimum=10, maximum=1, min_length=-1, pattern="[")
        errors = validate_constraints(c)
        assert [e.field for e in errors] == ["minimum/maximum", "minLength", "pattern"]

        joined = str(ConstraintErrors(errors))
        assert "minimum (10) cannot be greater than maximum (1)" in joined
        assert "minLength (-1) cannot be negative" in joined
        assert "invalid regex pattern" in joined

    def test_length_and_items_bounds(self):
        c = Constraints(min_length=5, max_length=2, min_items=3, max_items=1)
        fields = [e.field for e in validate_constraints(c)]
        assert fields == ["minLength/maxLength", "minItems/maxItems"]

    def test_negative_items(self):
        fields = [e.field for e in validate_constraints(Constraints(min_items=-1, max_items=-2))]
        assert "minItems" in fields
        assert "maxItems" in fields

    def test_multiple_of_must_be_positive(self):
        errors = validate_constraints(Constraints(multiple_of=0))
        assert errors[0].field == "multipleOf"

    def test_parameter_name_in_message(self):
        errors = validate_constraints(Constraints(multiple_of=-1), param_name="limit")
        assert "parameter 'limit'" in str(errors[0])


class TestSetValues:
    def test_zero_is_a_real_bound(self):
        assert Constraints(minimum=0).set_values() == {"minimum": 0}

    def test_empty(self):
        assert Constraints().is_empty()
        assert not Constraints(unique_items=True).is_empty()


class TestApplyToSchema:
    def test_copy_on_write(self):
        shared = Schema(type="integer", format="int64")
        result = apply_constraints_to_schema(shared, Constraints(minimum=1, maximum=100))
        assert result is not shared
        assert shared.minimum is None
        assert result.minimum == 1
        assert result.maximum == 100
        assert result.format == "int64"

    def test_no_constraints_returns_same_node(self):
        schema = Schema(type="string")
        assert apply_constraints_to_schema(schema, Constraints()) is schema

    def test_reference_is_wrapped(self):
        ref = Schema.reference("Filter")
        result = apply_constraints_to_schema(ref, Constraints(default={"a": 1}))
        assert result.all_of[0] is ref
        assert result.default == {"a": 1}

    def test_none_schema(self):
        assert apply_constraints_to_schema(None, Constraints(minimum=1)) is None


class TestApplyToParameter:
    def test_constraints_on_parameter(self):
        param = Parameter(name="tags", in_="query", type="array")
        apply_constraints_to_parameter(
            param,
            Constraints(min_items=1, unique_items=True, enum=["a", "b"]),
            allow_empty_value=True,
            collection_format="csv",
        )
        assert param.min_items == 1
        assert param.unique_items is True
        assert param.enum == ["a", "b"]
        assert param.allow_empty_value is True
        assert param.collection_format == "csv"
        assert param.schema_ is None


class TestOverrides:
    def test_schema_override_wins(self):
        override = Schema(type="array", items=Schema(type="string", format="uuid"))
        result = apply_type_format_overrides(Schema(type="string"), "integer", "int32", override)
        assert result.to_dict() == override.to_dict()
        assert result is not override

    def test_type_and_format(self):
        reflected = Schema(type="string")
        result = apply_type_format_overrides(reflected, None, "uuid")
        assert result.to_dict() == {"type": "string", "format": "uuid"}
        assert reflected.format is None

    def test_nothing_to_override(self):
        reflected = Schema(type="string")
        assert apply_type_format_overrides(reflected) is reflected

    def test_reference_replaced(self):
        result = apply_type_format_overrides(Schema.reference("User"), "string")
        assert result.to_dict() == {"type": "string"}


class TestOAS2Projection:
    def test_inferred(self):
        param = Parameter(name="id", in_="path")
        apply_type_format_to_oas2_parameter(param, Schema(type="integer", format="int64"))
        assert param.type == "integer"
        assert param.format == "int64"

    def test_union_uses_primary_type(self):
        param = Parameter(name="q", in_="query")
        apply_type_format_to_oas2_parameter(param, Schema(type=["null", "string"]))
        assert param.type == "string"

    def test_overrides(self):
        param = Parameter(name="q", in_="query")
        apply_type_format_to_oas2_parameter(param, Schema(type="string"), "integer", "int32")
        assert (param.type, param.format) == ("integer", "int32")

    def test_schema_override_wins(self):
        param = Parameter(name="q", in_="query")
        apply_type_format_to_oas2_parameter(
            param, Schema(type="string"), "integer", None, Schema(type="number", format="float")
        )
        assert (param.type, param.format) == ("number", "float")
