# domains/tracking/entity.py
"""
표준 Entity / Event 모델.

- Entity: 운송장 하나(TrackingID 하나)에 대한 집계 루트
- Event : 스캔 하나에 대응하는 불변 기록. event_id 로 중복 제거
어댑터의 convert 단계에서 만들어지고, 저장소에는 append-only 로만 병합된다.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from typing import Any, Dict, List, Optional

from django.utils.dateparse import parse_datetime

from .status_map import (
    MAJOR_STATUSES,
    StatusCode,
    describe_exception,
    is_terminal,
)

_EPOCH = datetime(1970, 1, 1, tzinfo=dt_timezone.utc)


def parse_when(value: Optional[str]) -> Optional[datetime]:
    """ISO8601 문자열 → aware datetime. naive 값은 UTC 로 본다."""
    if not value:
        return None
    dt = parse_datetime(str(value).strip())
    if dt is not None and dt.tzinfo is None:
        dt = dt.replace(tzinfo=dt_timezone.utc)
    return dt


def epoch_seconds(when: Optional[str]) -> int:
    dt = parse_when(when)
    if dt is None:
        return 0
    return int(dt.timestamp())


def fingerprint(tracking_id: str, when: Optional[str], status: int) -> str:
    """
    이벤트 식별자. 모든 어댑터가 같은 규칙을 쓴다:
    ev_<carrier>-<trackingNum>-<epochSeconds>-<status>
    """
    return f"ev_{tracking_id}-{epoch_seconds(when)}-{int(status)}"


def new_entity_uuid() -> str:
    return f"eg1_{uuid.uuid4()}"


def _when_key(event: "Event") -> datetime:
    return parse_when(event.when) or _EPOCH


@dataclass
class Event:
    event_id: str
    status: int
    operator_code: str = ""
    tracking_num: str = ""
    what: str = ""
    when: Optional[str] = None
    where: str = ""
    whom: str = ""
    notes: Optional[str] = None
    data_provider: str = ""
    exception_code: Optional[int] = None
    exception_desc: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    source_data: Dict[str, Any] = field(default_factory=dict)

    def set_exception(self, code: Optional[int]) -> None:
        if code is None:
            return
        self.exception_code = code
        self.exception_desc = describe_exception(code)

    def to_json(self, full_data: bool = False) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "status": self.status,
            "what": self.what,
            "whom": self.whom,
            "when": self.when,
            "where": self.where,
        }
        if self.notes is not None:
            result["notes"] = self.notes

        extra: Dict[str, Any] = {
            "trackingNum": self.tracking_num,
            "operatorCode": self.operator_code,
            "dataProvider": self.data_provider,
            "updateMethod": self.extra.get("updateMethod"),
            "updatedAt": self.extra.get("updatedAt"),
        }
        if self.exception_code is not None:
            extra["exceptionCode"] = self.exception_code
        if self.exception_desc is not None:
            extra["exceptionDesc"] = self.exception_desc
        result["extra"] = extra

        if full_data:
            result["sourceData"] = self.source_data
        return result


@dataclass
class Entity:
    id: str
    uuid: str = field(default_factory=new_entity_uuid)
    type: str = "waybill"
    ingestion_mode: str = "pull"
    params: Dict[str, str] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)
    events: List[Event] = field(default_factory=list)

    # ---- events --------------------------------------------------------------
    def has_event(self, event_id: str) -> bool:
        return any(e.event_id == event_id for e in self.events)

    def add_event(self, event: Event) -> bool:
        """같은 event_id 가 이미 있으면 추가하지 않고 False."""
        if self.has_event(event.event_id):
            return False
        self.events.append(event)
        return True

    def event_ids(self) -> List[str]:
        return [e.event_id for e in self.events]

    def event_num(self) -> int:
        return len(self.events)

    def sort_events_by_when(self) -> None:
        # 안정 정렬: 같은 시각이면 원래 순서 유지
        self.events.sort(key=_when_key)

    def last_event(self) -> Optional[Event]:
        if not self.events:
            return None
        return max(enumerate(self.events), key=lambda pair: (_when_key(pair[1]), pair[0]))[1]

    # ---- status --------------------------------------------------------------
    def is_status_exist(self, *statuses: int) -> bool:
        wanted = set(statuses)
        return any(e.status in wanted for e in self.events)

    def is_completed(self) -> bool:
        return any(is_terminal(e.status) for e in self.events)

    def get_missing_major_statuses(self) -> List[int]:
        existing = {e.status for e in self.events}
        return [int(s) for s in MAJOR_STATUSES if s not in existing]

    def creation_time(self) -> str:
        if not self.events:
            return ""
        first = min(self.events, key=_when_key)
        return first.when or ""

    def get_last_status(self) -> Optional[Dict[str, Any]]:
        last = self.last_event()
        if last is None:
            return None
        return {
            "id": self.id,
            "status": last.status,
            "what": last.what,
            "whom": last.whom,
            "when": last.when,
            "where": last.where,
            "notes": last.notes,
        }

    # ---- serialization -------------------------------------------------------
    def to_json(self, full_data: bool = False) -> Dict[str, Any]:
        self.sort_events_by_when()

        extra = dict(self.extra or {})
        if extra.get("isCrossBorder") or self.is_status_exist(
            StatusCode.IMPORT_CUSTOMS_IN_PROGRESS, StatusCode.IMPORT_CUSTOMS_RELEASED
        ):
            extra["isCrossBorder"] = True

        entity: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "uuid": self.uuid,
            "createdAt": self.creation_time(),
        }
        if extra:
            entity["extra"] = extra

        return {
            "entity": entity,
            "events": [e.to_json(full_data) for e in self.events],
        }
