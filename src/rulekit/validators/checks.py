"""フィールド検証ステップ（チェックと変換）の定義。"""

import inspect
import ipaddress
import json
import re
from collections.abc import Callable, Mapping
from typing import Annotated, Any

from email_validator import EmailNotValidError, validate_email
from pydantic import AnyUrl, TypeAdapter, UrlConstraints, ValidationError

from rulekit.models.rules import MISSING, CustomRule, RuleContext

_INT_RE = re.compile(r"^[-+]?\d+$")
_FLOAT_RE = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$")
_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
_ALPHA_RE = re.compile(r"^[A-Za-z]+$")
_ALNUM_RE = re.compile(r"^[A-Za-z0-9]+$")
_LABEL_RE = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")
_TLD_RE = re.compile(r"^([A-Za-z]{2,}|xn--[A-Za-z0-9-]+)$")
_URL_ADAPTER = TypeAdapter(
    Annotated[AnyUrl, UrlConstraints(allowed_schemes=["http", "https", "ftp"], host_required=True)]
)
_BOOLEAN_TEXT: set[str] = {"true", "false", "1", "0"}


def as_text(value: Any) -> str:
    """型・書式チェック用に値を文字列化する。"""
    if value is MISSING or value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def as_number(value: Any) -> float | None:
    """数値として解釈できれば float を返す。"""
    text = as_text(value).strip()
    if not _FLOAT_RE.match(text):
        return None
    return float(text)


def is_empty(value: Any) -> bool:
    return value is MISSING or value is None or value == ""


def format_number(number: float) -> str:
    return str(int(number)) if float(number).is_integer() else str(number)


def _is_email(value: Any) -> bool:
    try:
        validate_email(as_text(value), check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def _is_host(host: str) -> bool:
    """ホスト名がIPアドレスか、TLDを持つ正しいドメイン名かを判定する。"""
    try:
        ipaddress.ip_address(host.strip("[]"))
        return True
    except ValueError:
        pass
    labels = host.rstrip(".").split(".")
    if len(labels) < 2 or not _TLD_RE.match(labels[-1]):
        return False
    return all(_LABEL_RE.match(label) for label in labels)


def _is_url(value: Any) -> bool:
    text = as_text(value)
    if not text or any(c.isspace() for c in text):
        return False
    if "://" not in text:
        text = f"http://{text}"
    try:
        url = _URL_ADAPTER.validate_python(text)
    except ValidationError:
        return False
    return url.host is not None and _is_host(url.host)


def _is_json(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parsed = json.loads(value)
    except ValueError:
        return False
    return isinstance(parsed, (dict, list))


# タグ -> (述語, メッセージ接尾辞)
BASIC_PREDICATES: dict[str, tuple[Callable[[Any], bool], str]] = {
    "required": (lambda v: not is_empty(v), "is required"),
    "string": (lambda v: isinstance(v, str), "must be a string"),
    "integer": (lambda v: bool(_INT_RE.match(as_text(v))), "must be an integer"),
    "numeric": (lambda v: as_number(v) is not None, "must be numeric"),
    "boolean": (lambda v: as_text(v) in _BOOLEAN_TEXT, "must be true or false"),
    "email": (_is_email, "must be a valid email"),
    "url": (_is_url, "must be a valid URL"),
    "array": (lambda v: isinstance(v, (list, tuple)), "must be an array"),
    "object": (lambda v: isinstance(v, Mapping), "must be an object"),
    "json": (_is_json, "must be valid JSON"),
    "uuid": (lambda v: bool(_UUID_RE.match(as_text(v))), "must be a valid UUID"),
    "alpha": (lambda v: bool(_ALPHA_RE.match(as_text(v))), "must contain only letters"),
    "alphanumeric": (lambda v: bool(_ALNUM_RE.match(as_text(v))), "must contain only letters & numbers"),
}


class Transform:
    """値を書き換えるステップ。"""

    def apply(self, value: Any) -> Any:
        raise NotImplementedError


class DefaultValue(Transform):
    """値が未指定・null・空文字列のときにリテラルで置き換える。"""

    def __init__(self, literal: str) -> None:
        self.literal = literal

    def apply(self, value: Any) -> Any:
        return self.literal if is_empty(value) else value


class TrimString(Transform):
    def apply(self, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class Check:
    """失敗時にメッセージを返すステップ。

    bail が True のチェックの評価後、そのフィールドで既に失敗があれば後続ステップは実行されない。
    """

    bail = False

    async def evaluate(self, value: Any, context: RuleContext) -> str | None:
        raise NotImplementedError


class PredicateCheck(Check):
    """値のみで判定する組み込みチェック（基本ルール・パラメータ付きルール）。"""

    def __init__(self, predicate: Callable[[Any], bool], message: str, bail: bool = False) -> None:
        self.predicate = predicate
        self.message = message
        self.bail = bail

    async def evaluate(self, value: Any, context: RuleContext) -> str | None:
        return None if self.predicate(value) else self.message


class CrossFieldCheck(Check):
    """同一レコードの別フィールドを検証時に参照するチェック。"""

    def __init__(
        self,
        other_field: str,
        predicate: Callable[[Any, Any], bool],
        message: str,
    ) -> None:
        self.other_field = other_field
        self.predicate = predicate
        self.message = message

    async def evaluate(self, value: Any, context: RuleContext) -> str | None:
        return None if self.predicate(value, context.get(self.other_field)) else self.message


class CustomCheck(Check):
    """呼び出し側のカスタム述語を実行するチェック。

    戻り値が awaitable の場合は解決してから判定する。
    例外は失敗として扱い、そのメッセージを採用する。
    """

    def __init__(self, rule: CustomRule, field: str) -> None:
        self.rule = rule
        self.fallback = rule.message or f"{field} is invalid"

    async def evaluate(self, value: Any, context: RuleContext) -> str | None:
        try:
            result = self.rule.check(value, context)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            return str(e) or self.fallback
        return None if result else self.fallback


def loosely_equals(actual: Any, raw_expected: str) -> bool:
    """クロスフィールドルールの比較値と実際の値を緩やかに比較する。

    "true"/"false" は真偽値として扱い、数値はその10進表記と一致すれば等しいとみなす。
    """
    if raw_expected in ("true", "false"):
        expected = raw_expected == "true"
        if isinstance(actual, bool):
            return actual is expected
        if isinstance(actual, (int, float)):
            return actual == int(expected)
        return False
    if isinstance(actual, str):
        return actual == raw_expected
    if isinstance(actual, bool):
        return as_number(raw_expected) == int(actual)
    if isinstance(actual, (int, float)):
        expected_number = as_number(raw_expected)
        return expected_number is not None and actual == expected_number
    return False


def strictly_equals(value: Any, other: Any) -> bool:
    """same ルール用の厳密比較。

    真偽値は真偽値とのみ、数値は数値とのみ等しくなる。それ以外は型と値の両方が一致する必要がある。
    """
    if isinstance(value, bool) or isinstance(other, bool):
        return type(value) is type(other) and value == other
    if isinstance(value, (int, float)) and isinstance(other, (int, float)):
        return value == other
    return type(value) is type(other) and value == other
