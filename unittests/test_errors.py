import pytest

from pvschema import (
    IssueCode,
    ParseFailure,
    SchemaValidationError,
    Severity,
    array,
    configure_locale,
    integer,
    min_length,
    object_,
    string,
)
from pvschema.errors import IssueCollector, format_path
from pvschema.locales import EN


class TestIssues:
    @pytest.mark.parametrize(
        "path, expected",
        [
            pytest.param((), "", id="root"),
            pytest.param(("a",), "a", id="key"),
            pytest.param(("a", 0, "b"), "a[0].b", id="nested"),
            pytest.param((1, "x"), "[1].x", id="leading index"),
        ],
    )
    def test_format_path(self, path, expected: str):
        assert format_path(path) == expected

    def test_collector_keeps_duplicates_in_order(self):
        result = string().check(min_length(3), min_length(3)).safe_parse("a")
        assert isinstance(result, ParseFailure)
        assert len(result.issues) == 2
        assert result.issues[0] == result.issues[1]
        assert all(issue.severity == Severity.FAILURE for issue in result.issues)

    def test_collector_since(self):
        collector = IssueCollector()
        assert collector.since(0) == ()
        assert list(collector) == []


class TestSchemaValidationError:
    schema = object_({"name": string().check(min_length(2)), "tags": array(string())})

    def test_failure_error_carries_issues(self):
        result = self.schema.safe_parse({"name": "a", "tags": [1]})
        assert isinstance(result, ParseFailure)
        assert result.error.issues == result.issues
        assert result.num_issues_per_code == {IssueCode.TOO_SMALL: 1, IssueCode.INVALID_TYPE: 1}

    def test_flatten(self):
        configure_locale(EN)
        with pytest.raises(SchemaValidationError) as error_info:
            object_({"name": string().check(min_length(2)), "age": integer()}).parse({"name": "a", "age": "x"})
        assert error_info.value.flatten() == {
            "form_errors": [],
            "field_errors": {
                "name": ["Too small: expected string to have >= 2 characters"],
                "age": ["Invalid input: expected integer, received string"],
            },
        }

    def test_flatten_root(self):
        with pytest.raises(SchemaValidationError) as error_info:
            integer().parse("x")
        assert error_info.value.flatten() == {"form_errors": ["Invalid input"], "field_errors": {}}

    def test_pretty(self):
        with pytest.raises(SchemaValidationError) as error_info:
            self.schema.parse({"name": "a", "tags": [1]})
        assert error_info.value.pretty() == "x Invalid input\n  -> at name\nx Invalid input\n  -> at tags[0]"
        assert str(error_info.value) == error_info.value.pretty()
