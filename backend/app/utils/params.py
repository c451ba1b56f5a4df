"""Разбор идентификаторов и лимитов из query/body-параметров."""

from __future__ import annotations

import re
from typing import Any
from uuid import UUID

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_uuid(value: Any) -> UUID | None:
    """Возвращает UUID или None, если значение не является корректным UUID.

    Некорректный идентификатор для API равнозначен несуществующему ресурсу (404),
    а не ошибке формата.
    """
    if isinstance(value, UUID):
        return value
    if value is None:
        return None
    try:
        return UUID(str(value).strip())
    except (ValueError, AttributeError):
        return None


def clamp_limit(raw: Any, default: int, maximum: int) -> int:
    """Приводит limit к диапазону [1, maximum].

    Берётся ведущее целое ("12abc" и "12.5" -> 12); пустое значение или строка
    без ведущих цифр -> default.

    >>> clamp_limit("999", 20, 50)
    50
    >>> clamp_limit("12.5", 20, 50)
    12
    >>> clamp_limit("abc", 20, 50)
    20
    >>> clamp_limit("0", 20, 50)
    1
    """
    if raw is None or raw == "":
        return default
    match = _LEADING_INT.match(str(raw))
    if not match:
        return default
    return min(max(int(match.group(1)), 1), maximum)
