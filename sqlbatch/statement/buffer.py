"""Write buffer shared by statement builders and the interpolator."""

from typing import Any

__all__ = ("Buffer",)


class Buffer:
    """Accumulates SQL text and the values bound to its placeholders."""

    __slots__ = ("_parts", "_values")

    def __init__(self) -> None:
        self._parts: list[str] = []
        self._values: list[Any] = []

    def write_string(self, text: str) -> None:
        self._parts.append(text)

    def write_value(self, *values: Any) -> None:
        self._values.extend(values)

    def string(self) -> str:
        return "".join(self._parts)

    def values(self) -> "list[Any]":
        return list(self._values)

    def __len__(self) -> int:
        return sum(len(part) for part in self._parts)
