import re
from datetime import date as Date
from datetime import datetime
from typing import Any

import pytest

from pvschema import (
    File,
    IssueCode,
    SchemaNode,
    array,
    date,
    email,
    ends_with,
    file,
    gt,
    gte,
    includes,
    integer,
    length,
    lowercase,
    lt,
    lte,
    max_length,
    max_size,
    mime,
    min_length,
    min_size,
    multiple_of,
    normalize,
    number,
    object_,
    overwrite,
    positive,
    property_,
    refine,
    regex,
    set_,
    size,
    starts_with,
    string,
    superrefine,
    to_lower_case,
    to_upper_case,
    trim,
    uppercase,
    uuid,
)


def _codes(schema: SchemaNode, value: Any) -> list[IssueCode]:
    result = schema.safe_parse(value)
    if result.success:
        return []
    return [issue.code for issue in result.issues]


class TestValidations:
    @pytest.mark.parametrize(
        "schema, value, expected_codes",
        [
            pytest.param(number().check(lt(5)), 4, [], id="lt ok"),
            pytest.param(number().check(lt(5)), 5, [IssueCode.TOO_BIG], id="lt exclusive"),
            pytest.param(number().check(lte(5)), 5, [], id="lte inclusive"),
            pytest.param(number().check(gt(5)), 5, [IssueCode.TOO_SMALL], id="gt exclusive"),
            pytest.param(number().check(gte(5)), 5, [], id="gte inclusive"),
            pytest.param(number().check(positive()), 0, [IssueCode.TOO_SMALL], id="positive"),
            pytest.param(integer().check(multiple_of(3)), 9, [], id="multiple of"),
            pytest.param(integer().check(multiple_of(3)), 10, [IssueCode.NOT_MULTIPLE_OF], id="not multiple of"),
            pytest.param(number().check(multiple_of(0.1)), 0.3, [], id="float multiple of"),
            pytest.param(date().check(gte(Date(2024, 1, 1))), Date(2023, 12, 31), [IssueCode.TOO_SMALL], id="date"),
            pytest.param(date().check(gt(Date(2020, 1, 1))), datetime(2021, 1, 1, 12), [], id="datetime above date"),
            pytest.param(
                date().check(gt(Date(2020, 1, 1))),
                datetime(2019, 6, 1),
                [IssueCode.TOO_SMALL],
                id="datetime below date",
            ),
            pytest.param(date().check(lte(Date(2020, 1, 1))), datetime(2020, 1, 1, 23, 59), [], id="datetime same day"),
            pytest.param(
                date().check(lt(datetime(2020, 1, 2, 8))), Date(2020, 1, 2), [IssueCode.TOO_BIG], id="date vs datetime"
            ),
            pytest.param(string().check(min_length(2)), "a", [IssueCode.TOO_SMALL], id="min length"),
            pytest.param(string().check(max_length(2)), "abc", [IssueCode.TOO_BIG], id="max length"),
            pytest.param(array(number()).check(length(2)), [1], [IssueCode.TOO_SMALL], id="exact length short"),
            pytest.param(array(number()).check(length(2)), [1, 2, 3], [IssueCode.TOO_BIG], id="exact length long"),
            pytest.param(set_(number()).check(min_size(2)), {1}, [IssueCode.TOO_SMALL], id="min size"),
            pytest.param(set_(number()).check(max_size(1)), {1, 2}, [IssueCode.TOO_BIG], id="max size"),
            pytest.param(set_(number()).check(size(2)), {1, 2}, [], id="exact size"),
            pytest.param(string().check(regex(r"^\d+$")), "12a", [IssueCode.INVALID_FORMAT], id="regex"),
            pytest.param(string().check(regex(re.compile("b"))), "abc", [], id="regex searches"),
            pytest.param(string().check(starts_with("ab")), "abc", [], id="prefix"),
            pytest.param(string().check(ends_with("ab")), "abc", [IssueCode.INVALID_FORMAT], id="suffix"),
            pytest.param(string().check(includes("b")), "abc", [], id="includes"),
            pytest.param(string().check(includes("a", 1)), "abc", [IssueCode.INVALID_FORMAT], id="includes pos"),
            pytest.param(string().check(lowercase()), "abC", [IssueCode.INVALID_FORMAT], id="lowercase"),
            pytest.param(string().check(uppercase()), "AB1", [], id="uppercase"),
            pytest.param(string().check(email()), "ada@example.com", [], id="email"),
            pytest.param(string().check(email()), "ada@", [IssueCode.INVALID_FORMAT], id="no email"),
            pytest.param(string().check(uuid()), "123e4567-e89b-42d3-a456-426614174000", [], id="uuid"),
        ],
    )
    def test_validation(self, schema: SchemaNode, value: Any, expected_codes: list[IssueCode]):
        assert _codes(schema, value) == expected_codes

    def test_failed_validations_do_not_stop_the_pipeline(self):
        schema = string().check(min_length(5), starts_with("x"), max_length(1))
        result = schema.safe_parse("ab")
        assert not result.success
        assert [issue.code for issue in result.issues] == [
            IssueCode.TOO_SMALL,
            IssueCode.INVALID_FORMAT,
            IssueCode.TOO_BIG,
        ]

    def test_issue_parameters(self):
        result = string().check(min_length(5)).safe_parse("ab")
        assert not result.success
        issue = result.issues[0]
        assert issue.params["minimum"] == 5
        assert issue.params["origin"] == "string"
        assert issue.params["inclusive"] is True

    def test_multiple_of_zero_is_rejected(self):
        with pytest.raises(ValueError):
            multiple_of(0)


class TestFileChecks:
    def test_mime_and_size(self):
        schema = file().check(mime("image/*", "application/pdf"), max_size(4))
        assert schema.parse(File("a.png", b"1234", "image/png")).name == "a.png"
        assert _codes(schema, File("a.txt", b"12345", "text/plain")) == [IssueCode.INVALID_FORMAT, IssueCode.TOO_BIG]

    def test_mime_requires_types(self):
        with pytest.raises(ValueError):
            mime()


class TestTransforms:
    @pytest.mark.parametrize(
        "entry, value, expected",
        [
            pytest.param(trim(), "  a b  ", "a b", id="trim"),
            pytest.param(to_lower_case(), "AbC", "abc", id="lower"),
            pytest.param(to_upper_case(), "straße", "STRASSE", id="upper"),
            pytest.param(normalize("NFC"), "é", "é", id="nfc"),
            pytest.param(normalize("NFKD"), "ﬁ", "fi", id="nfkd"),
        ],
    )
    def test_transform(self, entry, value: str, expected: str):
        assert string().check(entry).parse(value) == expected

    @pytest.mark.parametrize("entry", [trim(), to_lower_case(), to_upper_case(), normalize(), normalize("NFKC")])
    @pytest.mark.parametrize("value", ["", "  Hello World  ", "ǅungla", "İstanbul", "straße", "é\t", "ﬁ x"])
    def test_transforms_are_idempotent(self, entry, value: str):
        once = string().check(entry).parse(value)
        twice = string().check(entry, entry).parse(value)
        assert once == twice

    def test_validations_see_the_transformed_value(self):
        schema = string().check(trim(), min_length(3))
        assert _codes(schema, "  ab  ") == [IssueCode.TOO_SMALL]
        assert schema.parse("  abc  ") == "abc"

    def test_overwrite(self):
        assert number().check(overwrite(lambda value: value * 2), lte(10)).parse(5) == 10

    def test_unknown_normalization_form(self):
        with pytest.raises(ValueError):
            normalize("XYZ")


class TestRefinements:
    def test_refine(self):
        schema = string().check(refine(lambda value: value != "admin", "reserved"))
        assert schema.parse("ada") == "ada"
        result = schema.safe_parse("admin")
        assert not result.success
        assert result.issues[0].code == IssueCode.CUSTOM
        assert result.issues[0].message == "reserved"

    def test_refine_with_path_and_params(self):
        schema = object_({"password": string(), "confirm": string()}).refine(
            lambda value: value["password"] == value["confirm"], path=("confirm",), params={"rule": "match"}
        )
        result = schema.safe_parse({"password": "a", "confirm": "b"})
        assert not result.success
        assert result.issues[0].path == ("confirm",)
        assert result.issues[0].params["rule"] == "match"

    def test_refine_abort_skips_remaining_checks(self):
        calls = []

        def record(value: str) -> bool:
            calls.append(value)
            return True

        schema = string().check(refine(lambda value: False, abort=True), refine(record))
        assert _codes(schema, "x") == [IssueCode.CUSTOM]
        assert calls == []

    def test_superrefine_reports_multiple_issues(self):
        def check_words(value: str, ctx) -> None:
            for index, word in enumerate(value.split()):
                if not word.istitle():
                    ctx.add_issue(f"word {index} is not capitalized", index=index)

        result = string().superrefine(check_words).safe_parse("Hello big world")
        assert not result.success
        assert [issue.message for issue in result.issues] == ["word 1 is not capitalized", "word 2 is not capitalized"]
        assert result.issues[1].params["index"] == 2

    def test_superrefine_abort_only_affects_its_node(self):
        def stop(value: Any, ctx) -> None:
            ctx.add_issue("stop")
            ctx.abort()

        schema = object_(
            {
                "first": string().superrefine(stop).check(min_length(10)),
                "second": string().check(min_length(10)),
            }
        )
        result = schema.safe_parse({"first": "a", "second": "b"})
        assert not result.success
        assert [(issue.path, issue.code) for issue in result.issues] == [
            (("first",), IssueCode.CUSTOM),
            (("second",), IssueCode.TOO_SMALL),
        ]

    def test_superrefine_custom_code_and_path(self):
        def check_range(value: dict, ctx) -> None:
            if value["start"] > value["end"]:
                ctx.add_issue(code=IssueCode.TOO_BIG, path=("start",), maximum=value["end"])

        schema = object_({"start": integer(), "end": integer()}).superrefine(check_range)
        result = schema.safe_parse({"start": 3, "end": 1})
        assert not result.success
        assert result.issues[0].code == IssueCode.TOO_BIG
        assert result.issues[0].path == ("start",)

    def test_property_check(self):
        schema = object_({}, unknown_keys="passthrough").check(property_("tags", array(string()).check(min_length(1))))
        result = schema.safe_parse({"tags": []})
        assert not result.success
        assert result.issues[0].path == ("tags",)
        assert result.issues[0].code == IssueCode.TOO_SMALL
        assert schema.parse({"tags": ["a"]}) == {"tags": ["a"]}

    def test_property_check_missing_property(self):
        schema = object_({}).check(property_("name", string()))
        result = schema.safe_parse({})
        assert not result.success
        assert result.issues[0].params["received"] == "undefined"

    def test_property_check_message_replaces_issue_messages(self):
        schema = object_({}, unknown_keys="passthrough").check(
            property_("tags", array(string()).check(min_length(1)), message="tags are required")
        )
        result = schema.safe_parse({"tags": []})
        assert not result.success
        assert [(issue.path, issue.code, issue.message) for issue in result.issues] == [
            (("tags",), IssueCode.TOO_SMALL, "tags are required")
        ]
        assert schema.parse({"tags": ["a"]}) == {"tags": ["a"]}

    def test_property_check_callable_message(self):
        schema = object_({}).check(property_("name", string(), message=lambda issue: f"name: {issue.code.value}"))
        result = schema.safe_parse({"name": 1})
        assert not result.success
        assert result.issues[0].message == "name: invalid_type"

    def test_user_exceptions_propagate(self):
        def explode(value: Any) -> bool:
            raise KeyError("boom")

        with pytest.raises(KeyError):
            string().refine(explode).safe_parse("x")
