from api_spec_builder.builder.errors import (
    BuilderError,
    BuilderErrors,
    ConfigError,
    ConstraintError,
    ConstraintErrors,
    OperationLocation,
    duplicate_operation_id,
    parameter_constraint,
    unsupported_method,
)


class TestBuilderError:
    def test_full_format(self):
        err = BuilderError(
            "bad value",
            component="operation",
            method="GET",
            path="/pets",
            operation_id="listPets",
            field="limit",
        )
        assert str(err) == "builder: operation GET /pets [operationId: listPets] field limit: bad value"
        assert err.location == "GET /pets"

    def test_bare_message(self):
        assert str(BuilderError("broken")) == "builder: broken"
        assert BuilderError("broken").location == "unknown"

    def test_duplicate_operation_id(self):
        err = duplicate_operation_id("dup", "POST", "/b", OperationLocation("GET", "/a"))
        assert str(err) == (
            "builder: operation POST /b [operationId: dup]: duplicate operationId 'dup' (first defined at GET /a)"
        )

    def test_webhook_location(self):
        first = OperationLocation("POST", "petAdopted", is_webhook=True)
        err = duplicate_operation_id("dup", "GET", "/a", first)
        assert "(first defined at webhook petAdopted (POST))" in str(err)

    def test_unsupported_method(self):
        assert "unsupported HTTP method: FETCH" in str(unsupported_method("FETCH", "/x"))
        assert "requires OAS version 3.2.0 or later" in str(unsupported_method("QUERY", "/x", "3.2.0"))

    def test_cause_is_chained(self):
        cause = ConstraintErrors([ConstraintError("pattern", "invalid regex pattern: [")])
        err = parameter_constraint("q", "GET /search", cause)
        assert err.__cause__ is cause
        assert str(err).endswith(": constraint error on pattern: invalid regex pattern: [")


class TestBuilderErrors:
    def test_count_and_bullets(self):
        errors = BuilderErrors([BuilderError("first"), BuilderError("second", component="webhook")])
        assert str(errors) == "builder: 2 error(s):\n  - first\n  - webhook: second"
        assert len(errors) == 2
        assert [e.message for e in errors] == ["first", "second"]

    def test_single_error_keeps_count(self):
        assert str(BuilderErrors([BuilderError("only")])).startswith("builder: 1 error(s):")

    def test_multi_line_cause_is_indented(self):
        cause = ConstraintErrors([
            ConstraintError("minLength", "minLength (-1) cannot be negative"),
            ConstraintError("pattern", "invalid regex pattern: ["),
        ])
        text = str(BuilderErrors([parameter_constraint("q", "GET /search", cause)]))
        assert "\n    constraint error on pattern" in text


class TestHierarchy:
    def test_family(self):
        for err in (
            ConstraintError("f", "m"),
            ConstraintErrors([]),
            BuilderError("m"),
            BuilderErrors([]),
        ):
            assert isinstance(err, ConfigError)
