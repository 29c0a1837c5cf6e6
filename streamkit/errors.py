from __future__ import annotations


class TransformError(Exception):
    """A transform stage's own logic failed while processing a value."""

    def __init__(self, message: str, *, index: int | None = None, stage: str | None = None):
        super().__init__(message)
        self.index = index
        self.stage = stage
