"""Joining Smalltalk statements into a single expression."""

from __future__ import annotations

SNAPSHOT_AND_CONTINUE = "Smalltalk snapshot: true andQuit: false"


class ExpressionBuilder:
    """Accumulates statements and joins them with the statement separator."""

    def __init__(self) -> None:
        self._statements: list[str] = []

    def add(self, statement: str) -> ExpressionBuilder:
        self._statements.append(statement)
        return self

    def build(self) -> str:
        return ".".join(self._statements)


def with_snapshot(expression: str) -> str:
    """Suffix ``expression`` so the image saves itself and keeps running."""
    return ExpressionBuilder().add(expression).add(SNAPSHOT_AND_CONTINUE).build()


__all__ = ["SNAPSHOT_AND_CONTINUE", "ExpressionBuilder", "with_snapshot"]
