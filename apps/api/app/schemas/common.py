from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ActionResult(BaseModel, Generic[T]):
    """
    Uniform outcome of a service operation.

    success=False carries a human readable `error` and a machine readable `code`
    (NOT_FOUND, PARSE_FAILURE, ...). The route layer picks the HTTP status.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, code: str) -> "ActionResult":
        return cls(success=False, error=error, code=code)
