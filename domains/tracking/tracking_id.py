# domains/tracking/tracking_id.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from .adapters import adapter_class_for
from .carriers import Carrier
from .errors import AppError


@dataclass(frozen=True)
class TrackingID:
    """
    공개 식별자 "<carrier>-<trackingNum>" (예: sfex-SF1234567890123).
    문자열 형태는 Entity.id 이자 저장소 키로 쓰인다.
    """

    carrier: str
    tracking_num: str

    @classmethod
    def parse(cls, slug: Optional[str]) -> "TrackingID":
        trimmed = (slug or "").strip()
        if not trimmed:
            raise AppError("400-01", "model - TRACKING_ID")

        carrier, sep, tracking_num = trimmed.partition("-")
        carrier = carrier.strip().lower()
        tracking_num = tracking_num.strip()
        if not sep or not carrier or not tracking_num:
            raise AppError("400-05", "model - URL_FORMAT")

        if carrier not in Carrier.values:
            raise AppError("400-04", f"model - OPERATOR_CODE[{carrier}]")

        # 번호 형식은 택배사 어댑터가 알고 있다
        adapter_class_for(carrier).validate_tracking_num(tracking_num)
        return cls(carrier=carrier, tracking_num=tracking_num)

    def to_string(self) -> str:
        return f"{self.carrier}-{self.tracking_num}"

    def __str__(self) -> str:
        return self.to_string()


def parse_tracking_id(slug: Optional[str]) -> Tuple[Optional[str], Optional[TrackingID]]:
    """
    (error_code, TrackingID) 튜플 형태의 파서.
    성공: (None, tid) / 실패: ("400-0N", None)
    """
    try:
        return None, TrackingID.parse(slug)
    except AppError as e:
        return e.code, None
