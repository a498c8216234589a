"""ValidationRunnerのユニットテスト。"""

from typing import Any

import pytest

from rulekit.models.rules import CustomRule, RuleContext
from rulekit.validators.compiler import RuleCompiler
from rulekit.validators.runner import ValidationRunner


async def _validate(rules: dict[str, Any], record: dict[str, Any]) -> Any:
    runner = ValidationRunner(RuleCompiler().compile(rules))
    return await runner.validate(record)


class TestRequired:
    @pytest.mark.parametrize("record", [{}, {"name": ""}, {"name": None}])
    async def test_missing_yields_single_message(self, record: dict[str, Any]) -> None:
        outcome = await _validate({"name": "required|string|min:3"}, record)
        assert outcome.accepted is False
        assert outcome.errors == ["name is required"]

    async def test_present_value_runs_remaining_checks(self) -> None:
        outcome = await _validate({"name": "required|string|min:3"}, {"name": "ab"})
        assert outcome.errors == ["name must be at least 3 characters"]

    async def test_required_bails_on_earlier_failure(self) -> None:
        outcome = await _validate({"f": "email|required|min:3"}, {"f": "ab"})
        assert outcome.errors == ["f must be a valid email"]

    async def test_required_bails_after_own_failure_with_earlier_errors(self) -> None:
        outcome = await _validate({"f": "email|required|min:3"}, {})
        assert outcome.errors == ["f must be a valid email", "f is required"]


class TestOptionalAndNullable:
    async def test_optional_omitted_field_skips_all_rules(self) -> None:
        outcome = await _validate({"ref": "optional|uuid|min:5|same:other"}, {"other": "x"})
        assert outcome.accepted is True

    async def test_optional_present_field_is_checked(self) -> None:
        outcome = await _validate({"ref": "optional|uuid"}, {"ref": "123"})
        assert outcome.errors == ["ref must be a valid UUID"]

    async def test_optional_position_does_not_matter(self) -> None:
        outcome = await _validate({"ref": "uuid|optional"}, {})
        assert outcome.accepted is True

    async def test_optional_does_not_accept_null(self) -> None:
        outcome = await _validate({"site": "optional|url"}, {"site": None})
        assert outcome.errors == ["site must be a valid URL"]

    async def test_nullable_accepts_null_and_absence(self) -> None:
        assert (await _validate({"site": "nullable|url"}, {"site": None})).accepted is True
        assert (await _validate({"site": "nullable|url"}, {})).accepted is True

    async def test_unflagged_absent_field_is_checked(self) -> None:
        outcome = await _validate({"age": "integer|min:18"}, {})
        assert outcome.errors == ["age must be an integer", "age must be at least 18"]


class TestMinMaxBetween:
    @pytest.mark.parametrize(
        ("age", "accepted"),
        [(17, False), (18, True), (19, True), ("17", False), ("18", True)],
    )
    async def test_min_numeric(self, age: Any, accepted: bool) -> None:
        outcome = await _validate({"age": "integer|min:18"}, {"age": age})
        assert outcome.accepted is accepted
        if not accepted:
            assert outcome.errors == ["age must be at least 18"]

    @pytest.mark.parametrize(
        ("name", "accepted"),
        [("ab", False), ("abc", True), ("abcd", True)],
    )
    async def test_min_length(self, name: str, accepted: bool) -> None:
        outcome = await _validate({"name": "string|min:3"}, {"name": name})
        assert outcome.accepted is accepted
        if not accepted:
            assert outcome.errors == ["name must be at least 3 characters"]

    async def test_numeric_min_on_long_string_compares_value(self) -> None:
        # 文字列長ではなく数値として比較される
        outcome = await _validate({"qty": "numeric|min:5"}, {"qty": "10"})
        assert outcome.accepted is True
        outcome = await _validate({"qty": "numeric|min:5"}, {"qty": "4.5"})
        assert outcome.errors == ["qty must be at least 5"]

    @pytest.mark.parametrize(
        ("score", "accepted"),
        [(-1, False), (0, True), (100, True), (101, False)],
    )
    async def test_between_numeric(self, score: int, accepted: bool) -> None:
        outcome = await _validate({"score": "numeric|between:0,100"}, {"score": score})
        assert outcome.accepted is accepted
        if not accepted:
            assert outcome.errors == ["score must be between 0 and 100"]

    @pytest.mark.parametrize(
        ("qty", "accepted"),
        [(9, True), (10, True), (11, False), ("11", False)],
    )
    async def test_max_numeric(self, qty: Any, accepted: bool) -> None:
        outcome = await _validate({"qty": "integer|max:10"}, {"qty": qty})
        assert outcome.accepted is accepted
        if not accepted:
            assert outcome.errors == ["qty must be at most 10"]

    @pytest.mark.parametrize(
        ("code", "accepted"),
        [("a", False), ("ab", True), ("abcd", True), ("abcde", False)],
    )
    async def test_between_length(self, code: str, accepted: bool) -> None:
        outcome = await _validate({"code": "string|between:2,4"}, {"code": code})
        assert outcome.accepted is accepted
        if not accepted:
            assert outcome.errors == ["code must be between 2 and 4 characters"]

    async def test_max_and_length_count_characters(self) -> None:
        outcome = await _validate({"code": "max:3|length:2,3"}, {"code": "abcd"})
        assert outcome.errors == [
            "code must be at most 3 characters",
            "code must be between 2 and 3 characters",
        ]

    async def test_numeric_bound_rejects_non_numbers(self) -> None:
        outcome = await _validate({"qty": "numeric|max:10"}, {"qty": "abc"})
        assert outcome.errors == ["qty must be numeric", "qty must be at most 10"]


class TestTypeRules:
    @pytest.mark.parametrize(
        ("rule", "good", "bad", "message"),
        [
            ("string", "x", 1, "must be a string"),
            ("integer", 20, "1.5", "must be an integer"),
            ("numeric", "1.5", "abc", "must be numeric"),
            ("boolean", True, "yes", "must be true or false"),
            ("email", "john@example.com", "bad-email", "must be a valid email"),
            ("url", "https://example.com/path", "not a url", "must be a valid URL"),
            ("array", [1, 2], "x", "must be an array"),
            ("object", {"a": 1}, [1], "must be an object"),
            ("json", '{"a": 1}', "1", "must be valid JSON"),
            ("uuid", "123e4567-e89b-12d3-a456-426614174000", "123", "must be a valid UUID"),
            ("alpha", "abc", "ab1", "must contain only letters"),
            ("alphanumeric", "ab1", "ab-1", "must contain only letters & numbers"),
        ],
    )
    async def test_type_rule(self, rule: str, good: Any, bad: Any, message: str) -> None:
        assert (await _validate({"f": rule}, {"f": good})).accepted is True
        outcome = await _validate({"f": rule}, {"f": bad})
        assert outcome.errors == [f"f {message}"]

    @pytest.mark.parametrize(
        "value",
        ["a..b@example.com", "a@example..com", ".a@example.com", "a@-example.com", "a@example", "a b@example.com"],
    )
    async def test_email_rejects_malformed_addresses(self, value: str) -> None:
        outcome = await _validate({"f": "email"}, {"f": value})
        assert outcome.errors == ["f must be a valid email"]

    @pytest.mark.parametrize(
        "value",
        [
            "http://-bad-.com",
            "http://localhost",
            "javascript://example.com",
            "https://exa mple.com",
            "http://example.c",
        ],
    )
    async def test_url_rejects_malformed_urls(self, value: str) -> None:
        outcome = await _validate({"f": "url"}, {"f": value})
        assert outcome.errors == ["f must be a valid URL"]

    @pytest.mark.parametrize("value", ["example.com", "ftp://files.example.org/a.txt", "http://127.0.0.1:8080/"])
    async def test_url_accepts_bare_hosts_and_ip_addresses(self, value: str) -> None:
        assert (await _validate({"f": "url"}, {"f": value})).accepted is True

    @pytest.mark.parametrize("value", ["007", "-007", "+0", 7])
    async def test_integer_accepts_leading_zeros_and_signs(self, value: Any) -> None:
        assert (await _validate({"f": "integer"}, {"f": value})).accepted is True


class TestParameterizedRules:
    async def test_in_trims_value(self) -> None:
        outcome = await _validate({"role": "in:admin, user"}, {"role": " user "})
        assert outcome.accepted is True
        assert outcome.data["role"] == "user"

    async def test_in_rejects_other_values(self) -> None:
        outcome = await _validate({"role": "in:admin,user"}, {"role": "root"})
        assert outcome.errors == ["role must be one of: admin, user"]

    async def test_regex_with_delimiters(self) -> None:
        rules = {"zip": "regex:/^\\d{3}-\\d{4}$/"}
        assert (await _validate(rules, {"zip": "123-4567"})).accepted is True
        assert (await _validate(rules, {"zip": "1234567"})).errors == ["zip format is invalid"]

    async def test_default_applied_when_absent(self) -> None:
        outcome = await _validate({"nickname": "default:Guest"}, {})
        assert outcome.accepted is True
        assert outcome.data == {"nickname": "Guest"}

    @pytest.mark.parametrize("value", [None, ""])
    async def test_default_replaces_empty(self, value: Any) -> None:
        outcome = await _validate({"nickname": "default:Guest"}, {"nickname": value})
        assert outcome.data["nickname"] == "Guest"

    async def test_default_keeps_existing_value(self) -> None:
        outcome = await _validate({"nickname": "default:Guest"}, {"nickname": "Neo"})
        assert outcome.data["nickname"] == "Neo"

    async def test_default_runs_before_later_checks(self) -> None:
        outcome = await _validate({"nickname": "default:Guest|required|alpha"}, {})
        assert outcome.accepted is True

    async def test_default_is_reported_with_errors(self) -> None:
        outcome = await _validate({"nickname": "default:Guest", "name": "required"}, {})
        assert outcome.errors == ["name is required"]
        assert outcome.data["nickname"] == "Guest"


class TestCrossFieldRules:
    async def test_same_mismatch(self) -> None:
        outcome = await _validate(
            {"password": "optional|string", "confirmPassword": "optional|same:password"},
            {"password": "secret", "confirmPassword": "wrong"},
        )
        assert outcome.errors == ["confirmPassword must match password"]

    async def test_same_match(self) -> None:
        outcome = await _validate(
            {"confirmPassword": "same:password"},
            {"password": "secret", "confirmPassword": "secret"},
        )
        assert outcome.accepted is True

    @pytest.mark.parametrize(
        ("a", "b"),
        [(1, True), (True, 1), (0, False), ("1", 1), (1, "1"), (None, "")],
    )
    async def test_same_compares_strictly(self, a: Any, b: Any) -> None:
        outcome = await _validate({"b": "same:a"}, {"a": a, "b": b})
        assert outcome.errors == ["b must match a"]

    async def test_same_matches_equal_numbers_and_absence(self) -> None:
        assert (await _validate({"b": "same:a"}, {"a": 2, "b": 2.0})).accepted is True
        assert (await _validate({"b": "same:a"}, {"a": True, "b": True})).accepted is True
        assert (await _validate({"b": "same:a"}, {})).accepted is True

    async def test_prohibited_if(self) -> None:
        rules = {"docs": "prohibited_if:role,user"}
        outcome = await _validate(rules, {"role": "user", "docs": "x"})
        assert outcome.errors == ["docs is not allowed when role is user"]
        assert (await _validate(rules, {"role": "admin", "docs": "x"})).accepted is True
        assert (await _validate(rules, {"role": "user"})).accepted is True

    async def test_required_if_with_boolean(self) -> None:
        rules = {"email": "required_if:newsletter,true"}
        outcome = await _validate(rules, {"newsletter": True})
        assert outcome.errors == ["email is required when newsletter is true"]
        assert (await _validate(rules, {"newsletter": False})).accepted is True
        assert (await _validate(rules, {"newsletter": True, "email": "a@b.co"})).accepted is True

    async def test_required_if_compares_numbers_loosely(self) -> None:
        rules = {"reason": "required_if:level,3"}
        assert (await _validate(rules, {"level": 3})).errors == ["reason is required when level is 3"]
        assert (await _validate(rules, {"level": "3"})).errors == ["reason is required when level is 3"]
        assert (await _validate(rules, {"level": 2})).accepted is True

    async def test_required_unless(self) -> None:
        rules = {"phone": "required_unless:contact,email"}
        outcome = await _validate(rules, {"contact": "sms"})
        assert outcome.errors == ["phone is required unless contact is email"]
        assert (await _validate(rules, {"contact": "email"})).accepted is True
        assert (await _validate(rules, {"contact": "sms", "phone": "555"})).accepted is True

    async def test_comparison_value_keeps_text_after_first_comma(self) -> None:
        rules = {"note": "required_if:tag,a,b"}
        outcome = await _validate(rules, {"tag": "a,b"})
        assert outcome.errors == ["note is required when tag is a,b"]

    async def test_malformed_cross_field_rule_passes(self) -> None:
        outcome = await _validate({"docs": "prohibited_if:role"}, {"role": "user", "docs": "x"})
        assert outcome.accepted is True


class TestCustomRules:
    async def test_sync_predicate(self) -> None:
        rule = CustomRule(check=lambda value, ctx: value == "ok")
        assert (await _validate({"f": [rule]}, {"f": "ok"})).accepted is True
        assert (await _validate({"f": [rule]}, {"f": "no"})).errors == ["f is invalid"]

    async def test_async_predicate_is_awaited(self) -> None:
        async def is_even(value: Any, ctx: RuleContext) -> bool:
            return value % 2 == 0

        rules = {"n": [CustomRule(check=is_even, message="n must be even")]}
        assert (await _validate(rules, {"n": 4})).accepted is True
        assert (await _validate(rules, {"n": 3})).errors == ["n must be even"]

    async def test_raised_message_is_used(self) -> None:
        async def taken(value: Any, ctx: RuleContext) -> bool:
            raise ValueError(f"{ctx.field} {value} is already taken")

        outcome = await _validate({"user": [{"custom": taken}]}, {"user": "neo"})
        assert outcome.errors == ["user neo is already taken"]

    async def test_custom_rules_run_after_string_rules(self) -> None:
        rule = CustomRule(check=lambda value, ctx: False, message="custom failed")
        outcome = await _validate({"f": [rule, "string"]}, {"f": 1})
        assert outcome.errors == ["f must be a string", "custom failed"]

    async def test_context_exposes_record(self) -> None:
        def matches(value: Any, ctx: RuleContext) -> bool:
            return value == ctx.record.get("password")

        rules = {"confirm": [CustomRule(check=matches)]}
        outcome = await _validate(rules, {"password": "a", "confirm": "b"})
        assert outcome.errors == ["confirm is invalid"]

    async def test_required_failure_skips_custom(self) -> None:
        rule = CustomRule(check=lambda value, ctx: False)
        outcome = await _validate({"f": ["required", rule]}, {})
        assert outcome.errors == ["f is required"]


class TestValidationRunner:
    async def test_collects_errors_across_fields_in_order(self) -> None:
        rules = {
            "name": "required|string",
            "email": "required|email",
            "age": "integer|min:18",
        }
        outcome = await _validate(rules, {"email": "bad", "age": 10})
        assert outcome.errors == [
            "name is required",
            "email must be a valid email",
            "age must be at least 18",
        ]

    async def test_input_record_is_not_mutated(self) -> None:
        record: dict[str, Any] = {"role": " admin "}
        outcome = await _validate({"role": "in:admin", "nickname": "default:Guest"}, record)
        assert record == {"role": " admin "}
        assert outcome.data == {"role": "admin", "nickname": "Guest"}

    async def test_rule_set_is_reusable(self) -> None:
        runner = ValidationRunner(RuleCompiler().compile({"name": "required"}))
        assert (await runner.validate({})).accepted is False
        assert (await runner.validate({"name": "x"})).accepted is True
