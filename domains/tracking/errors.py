# domains/tracking/errors.py
from __future__ import annotations

from typing import Optional

# 에러 코드 형식: "<httpStatus>-<sequence>"
ERROR_MESSAGES = {
    "400-01": "Tracking ID is missing.",
    "400-02": "Tracking number does not match the carrier's format.",
    "400-03": "A query parameter is missing, unsupported or invalid.",
    "400-04": "Unsupported carrier code.",
    "400-05": "Malformed tracking ID. Expected '<carrier>-<trackingNumber>'.",
    "404-01": "No tracking data found for this shipment.",
    "500-01": "The carrier is currently unavailable.",
    "502-01": "The carrier request failed.",
    "504-01": "The carrier request timed out.",
}


class AppError(Exception):
    """
    안정적인 코드가 붙은 애플리케이션 에러.
    - code: "404-01" 처럼 HTTP 상태 + 순번
    - detail: 로그/디버깅용 부가 문자열 (예: "sfex - PHONENUM")
    """

    def __init__(self, code: str, detail: Optional[str] = None):
        self.code = code
        self.detail = detail
        super().__init__(ERROR_MESSAGES.get(code, ""))

    @property
    def message(self) -> str:
        return ERROR_MESSAGES.get(self.code, "")

    @property
    def http_status(self) -> int:
        head = self.code.split("-", 1)[0]
        if not head.isdigit():
            raise ValueError(f"Invalid error code: {self.code}")
        return int(head)

    def is_client_error(self) -> bool:
        return 400 <= self.http_status < 500

    def get_message(self) -> str:
        if self.detail:
            return f"{self.message} [{self.detail}]"
        return self.message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}

    def __str__(self) -> str:
        return f"{self.code}: {self.get_message()}"


class CarrierError(AppError):
    """택배사 호출 실패(네트워크/타임아웃/비정상 응답). 다음 주기에 재시도 대상."""

    def __init__(self, code: str = "502-01", detail: Optional[str] = None):
        super().__init__(code, detail)
