from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException

VALIDATION_ERROR = "validation_error"
EMPTY_BATCH = "empty_batch"


@dataclass
class ApiError:
    code: str
    message: str
    details: list[dict[str, Any]] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class AppHTTPException(HTTPException):
    def __init__(self, status_code: int, error: ApiError):
        super().__init__(status_code=status_code, detail=error.to_dict())


def validation_error(errors: Sequence[Mapping[str, Any]]) -> ApiError:
    # Only location and message; pydantic's ctx entries are not always JSON-safe.
    details = [{"loc": list(error.get("loc", ())), "msg": error.get("msg", "")} for error in errors]
    return ApiError(code=VALIDATION_ERROR, message="Invalid data format", details=details)
