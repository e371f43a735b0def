"""Record formatters resolved to loguru format callables.

A formatter is chosen once when settings are installed. The registry hands the
resulting callable to its loguru handler, so nothing is re-dispatched per
record beyond the call itself.
"""

from collections.abc import Callable
from enum import Enum
import json
from typing import Any, TypeAlias

FormatCallable: TypeAlias = Callable[[dict[str, Any]], str]

# Keys bound by the registry and formatters; never rendered as user fields
INTERNAL_EXTRA_PREFIX = "logkeeper_"
FIELDS_KEY = f"{INTERNAL_EXTRA_PREFIX}fields"
JSON_KEY = f"{INTERNAL_EXTRA_PREFIX}json"


class FormatterKind(Enum):
    """Built-in record layouts."""

    WITH_FIELD = "withField"
    EASY = "easy"
    JSON = "json"
    TEXT = "text"


def _user_fields(record: dict[str, Any]) -> dict[str, Any]:
    return {
        key: value
        for key, value in record["extra"].items()
        if not key.startswith(INTERNAL_EXTRA_PREFIX)
    }


def _with_field(timestamp_format: str) -> FormatCallable:
    template = (
        f"{{time:{timestamp_format}}} - [{{level}}]: {{message}}"
        f"{{extra[{FIELDS_KEY}]}}\n{{exception}}"
    )

    def render(record: dict[str, Any]) -> str:
        fields = _user_fields(record)
        record["extra"][FIELDS_KEY] = "".join(f" {k}={v}" for k, v in fields.items())
        return template

    return render


def _text(timestamp_format: str) -> FormatCallable:
    template = f"{{time:{timestamp_format}}} | {{level: <8}} | {{message}}\n{{exception}}"
    return lambda _record: template


def _easy(_timestamp_format: str) -> FormatCallable:
    return lambda _record: "{message}\n{exception}"


def _json(_timestamp_format: str) -> FormatCallable:
    def render(record: dict[str, Any]) -> str:
        payload = {
            "time": record["time"].isoformat(),
            "level": record["level"].name.lower(),
            "msg": record["message"],
            **_user_fields(record),
        }
        record["extra"][JSON_KEY] = json.dumps(payload, default=str, ensure_ascii=False)
        return f"{{extra[{JSON_KEY}]}}\n"

    return render


_BUILDERS: dict[FormatterKind, Callable[[str], FormatCallable]] = {
    FormatterKind.WITH_FIELD: _with_field,
    FormatterKind.TEXT: _text,
    FormatterKind.EASY: _easy,
    FormatterKind.JSON: _json,
}


def resolve_formatter(
    formatter: FormatterKind | str | FormatCallable, timestamp_format: str
) -> FormatCallable:
    """Turn a formatter setting into a loguru ``format=`` callable.

    A plain string is treated as a custom loguru template; a callable is used
    as-is and must return a template ending with a newline.
    """
    if isinstance(formatter, FormatterKind):
        return _BUILDERS[formatter](timestamp_format)
    if isinstance(formatter, str):
        template = formatter if formatter.endswith("\n") else formatter + "\n{exception}"
        return lambda _record: template
    return formatter
