from __future__ import annotations

from typing import Optional

from django.db import models


class StatusCode(models.IntegerChoices):
    """
    택배사 독립적인 표준 상태 코드.
    어댑터는 이 코드만 이벤트에 기록하고, 택배사 고유 코드는 sourceData에만 남긴다.
    """

    TRANSPORT_BILL_CREATED = 3000, "Transport Bill Created"
    LOGISTICS_IN_PROGRESS = 3001, "Logistics In-Progress"
    ARRIVED_IN_TRANSIT = 3002, "Arrived, In-Transit"
    SCANNED_IN_TRANSIT = 3003, "Scanned, In-Transit"
    DEPARTED_IN_TRANSIT = 3004, "Departed, In-Transit"
    INFORMATION_RECEIVED = 3005, "Information Received"
    PROCESS_STOPPED = 3009, "Process Stopped"
    PICKED_UP = 3050, "Picked Up"
    RECEIVED_BY_CARRIER = 3100, "Received by Carrier"
    EXPORT_CUSTOMS_IN_PROGRESS = 3150, "Customs Clearance: Export In-Progress"
    EXPORT_CUSTOMS_RELEASED = 3200, "Customs Clearance: Export Released"
    IN_TRANSIT = 3250, "In-Transit"
    ARRIVED_AT_DESTINATION = 3300, "Arrived At Destination"
    IMPORT_CUSTOMS_IN_PROGRESS = 3350, "Customs Clearance: Import In-Progress"
    IMPORT_CUSTOMS_RELEASED = 3400, "Customs Clearance: Import Released"
    FINAL_DELIVERY_IN_PROGRESS = 3450, "Final Delivery In-Progress"
    DELIVERED = 3500, "Delivered"


class ExceptionCode(models.IntegerChoices):
    EXCEPTION = 900, "Exception"
    RECIPIENT_NOT_AVAILABLE = 907, "Recipient, Not Available"
    REROUTED = 909, "Rerouted"


TERMINAL_STATUSES = frozenset({StatusCode.DELIVERED, StatusCode.PROCESS_STOPPED})

# 배송 완료 건에서 반드시 보여야 하는 주요 단계
MAJOR_STATUSES = (
    StatusCode.RECEIVED_BY_CARRIER,
    StatusCode.ARRIVED_AT_DESTINATION,
    StatusCode.IMPORT_CUSTOMS_RELEASED,
)

_FAMILIES = {
    StatusCode.TRANSPORT_BILL_CREATED: "pre-transit",
    StatusCode.INFORMATION_RECEIVED: "pre-transit",
    StatusCode.PICKED_UP: "pre-transit",
    StatusCode.RECEIVED_BY_CARRIER: "pre-transit",
    StatusCode.LOGISTICS_IN_PROGRESS: "in-transit",
    StatusCode.ARRIVED_IN_TRANSIT: "in-transit",
    StatusCode.SCANNED_IN_TRANSIT: "in-transit",
    StatusCode.DEPARTED_IN_TRANSIT: "in-transit",
    StatusCode.IN_TRANSIT: "in-transit",
    StatusCode.ARRIVED_AT_DESTINATION: "in-transit",
    StatusCode.EXPORT_CUSTOMS_IN_PROGRESS: "customs",
    StatusCode.EXPORT_CUSTOMS_RELEASED: "customs",
    StatusCode.IMPORT_CUSTOMS_IN_PROGRESS: "customs",
    StatusCode.IMPORT_CUSTOMS_RELEASED: "customs",
    StatusCode.FINAL_DELIVERY_IN_PROGRESS: "delivery",
    StatusCode.DELIVERED: "delivered",
    StatusCode.PROCESS_STOPPED: "stopped",
}

_BY_DESCRIPTION = {label.lower(): value for value, label in StatusCode.choices}


def describe(code: Optional[int]) -> str:
    """표준 코드 → 설명. 모르는 코드는 빈 문자열."""
    if code in StatusCode.values:
        return StatusCode(code).label
    return ""


def lookup(description: Optional[str]) -> Optional[int]:
    """설명 → 표준 코드 (역방향). 대소문자 무시."""
    return _BY_DESCRIPTION.get((description or "").strip().lower())


def family(code: Optional[int]) -> str:
    """in-transit / customs / delivered 처럼 상태가 속한 묶음."""
    return _FAMILIES.get(code, "")


def is_terminal(code: Optional[int]) -> bool:
    return code in TERMINAL_STATUSES


def describe_exception(code: Optional[int]) -> str:
    if code in ExceptionCode.values:
        return ExceptionCode(code).label
    return ""
