# domains/tracking/adapters/base.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import requests
from django.utils import timezone

from ..entity import Entity, Event, fingerprint, parse_when
from ..errors import AppError, CarrierError
from ..status_map import StatusCode, describe
from .state import CarrierState

if TYPE_CHECKING:
    from ..tracking_id import TrackingID

logger = logging.getLogger(__name__)

SUPPLEMENT_PROVIDER = "Whereis"
SUPPLEMENT_NOTES = "Supplement event generated by Whereis"


# ──────────────────────────────────────────────────────────────────────────────
# 상태 매핑: 카테고리별로 Table(operation → code) 또는 Rule(원본 필드 → code)
# ──────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Rule:
    """원본 필드(자유 텍스트 등)를 보고 코드를 결정. None 이면 기본값으로 떨어진다."""

    decide: Callable[[Mapping[str, Any], str], Optional[int]]

    def resolve(self, operation: str, source: Mapping[str, Any]) -> Optional[int]:
        return self.decide(source, operation)


@dataclass(frozen=True)
class Table:
    """operation 코드 → 표준 코드. 값 자리에 Rule 을 둘 수도 있다."""

    codes: Mapping[str, Union[int, Rule]]

    def resolve(self, operation: str, source: Mapping[str, Any]) -> Optional[int]:
        value = self.codes.get(operation)
        if isinstance(value, Rule):
            return value.resolve(operation, source)
        return value


StatusEntry = Union[Table, Rule]


def keyword_rule(
    field: str,
    patterns: Sequence[Tuple[str, int]],
    otherwise: Union[int, Table, None] = None,
) -> Rule:
    """
    field 값에 정규식 키워드가 있으면 해당 코드.
    없으면 otherwise (정수 또는 operation 기준 Table).
    """
    compiled = [(re.compile(p, re.IGNORECASE), code) for p, code in patterns]

    def decide(source: Mapping[str, Any], operation: str) -> Optional[int]:
        text = str(source.get(field) or "")
        for rx, code in compiled:
            if rx.search(text):
                return code
        if isinstance(otherwise, Table):
            return otherwise.resolve(operation, source)
        return otherwise

    return Rule(decide)


def update_method_display(update_method: str) -> str:
    """auto-pull -> Auto-pull"""
    return update_method[:1].upper() + update_method[1:]


# ──────────────────────────────────────────────────────────────────────────────
# 어댑터 공통 인터페이스
# ──────────────────────────────────────────────────────────────────────────────
class CarrierAdapter:
    """
    택배사 어댑터의 공통 인터페이스.
    - get_route: 인증 포함 네트워크 호출 → 원본 payload
    - convert  : 원본 payload → 표준 Entity (I/O 없음)
    """

    code: str = ""
    name: str = ""
    tracking_number_pattern: str = r".+"
    required_params: Tuple[str, ...] = ()
    # 한 번의 조회로 묶을 수 있는 운송장 수 (1 이면 건별 조회)
    batch_size: int = 1

    status_map: Mapping[str, StatusEntry] = {}
    category_field: str = ""
    operation_field: str = ""

    def __init__(self, state: CarrierState):
        self.state = state

    # ---- 검증 ------------------------------------------------------------------
    def is_active(self) -> bool:
        return self.state.is_configured(self.code)

    @classmethod
    def validate_tracking_num(cls, tracking_num: str) -> None:
        if not re.fullmatch(cls.tracking_number_pattern, tracking_num or ""):
            raise AppError("400-02", f"model - {cls.code.upper()}_FORMAT")

    def get_extra_params(self, query: Mapping[str, Any]) -> Dict[str, str]:
        return {p: str(query.get(p) or "") for p in self.required_params}

    def validate_params(self, params: Mapping[str, Any]) -> None:
        for p in self.required_params:
            if not str((params or {}).get(p) or "").strip():
                raise AppError("400-03", f"{self.code} - {p.upper()}")

    def validate_stored_entity(self, entity: Entity, params: Mapping[str, Any]) -> None:
        """저장된 조회 파라미터(예: 전화번호)와 요청 값이 다르면 거부."""
        for p in self.required_params:
            if (entity.params or {}).get(p) != (params or {}).get(p):
                raise AppError("400-03", f"{self.code} - {p.upper()}")

    # ---- 조회 ------------------------------------------------------------------
    def get_route(self, tracking_num: str, params: Mapping[str, str]) -> Dict[str, Any]:
        raise NotImplementedError

    def where_is(self, tracking_id: "TrackingID", params: Mapping[str, str], update_method: str) -> Entity:
        raw = self.get_route(tracking_id.tracking_num, params)
        return self.convert(tracking_id, raw, params, update_method)

    def get_routes(self, tracking_nums: Sequence[str]) -> Dict[str, Dict[str, Any]]:
        """일괄 조회 → {tracking_num: 번호별 원본 payload}. batch_size > 1 인 택배사만 구현."""
        raise NotImplementedError

    def where_is_batch(self, tracking_ids: Sequence["TrackingID"], update_method: str) -> List[Entity]:
        """
        조회 파라미터가 필요 없는 택배사의 일괄 조회 + 변환.
        번호별로 데이터가 없으면(404-01) 그 건만 건너뛴다.
        """
        raw_by_num = self.get_routes([tid.tracking_num for tid in tracking_ids])
        entities: List[Entity] = []
        for tracking_id in tracking_ids:
            raw = raw_by_num.get(tracking_id.tracking_num)
            if raw is None:
                logger.warning(
                    f"{update_method_display(update_method)} -> {self.code.upper()}: "
                    f"{tracking_id} is missing from the batch response"
                )
                continue
            try:
                entities.append(self.convert(tracking_id, raw, {}, update_method))
            except AppError as e:
                if e.code != "404-01":
                    raise
                logger.info(f"{update_method_display(update_method)}: no data for {tracking_id}, skipped")
        return entities

    # ---- 변환 ------------------------------------------------------------------
    def scan_entries(self, raw: Mapping[str, Any]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def create_event(
        self,
        tracking_id: "TrackingID",
        entry: Mapping[str, Any],
        update_method: str,
        now: datetime,
    ) -> Event:
        raise NotImplementedError

    def entity_extra(self, raw: Mapping[str, Any]) -> Dict[str, Any]:
        return {}

    def missing_event_checks(self) -> Sequence[Tuple[int, Callable[[Entity], Optional[Event]]]]:
        """(보충할 상태, entity → 기준 이벤트 또는 None) 목록."""
        return ()

    def convert(
        self,
        tracking_id: "TrackingID",
        raw: Mapping[str, Any],
        params: Optional[Mapping[str, str]],
        update_method: str,
        now: Optional[datetime] = None,
    ) -> Entity:
        now = now or timezone.now()
        entries = self.scan_entries(raw)
        if not entries:
            logger.warning(
                f"{update_method_display(update_method)} -> {self.code.upper()}: "
                f"Unexpected data received for {tracking_id}. Empty scan list in the received response."
            )
            raise AppError("404-01", f"Received empty data from source {self.code}")

        entity = Entity(
            id=str(tracking_id),
            params=dict(params or {}),
            extra=self.entity_extra(raw),
        )
        for entry in entries:
            event = self.create_event(tracking_id, entry, update_method, now)
            # 같은 응답 안의 중복 행은 한 번만
            entity.add_event(event)

        entity.sort_events_by_when()
        self.add_supplement_events(tracking_id, entity, now)
        return entity

    def resolve_status(self, source: Mapping[str, Any]) -> int:
        category = str(source.get(self.category_field) or "")
        operation = str(source.get(self.operation_field) or "")
        entry = self.status_map.get(category)
        code = entry.resolve(operation, source) if entry is not None else None
        if code is None:
            return int(StatusCode.LOGISTICS_IN_PROGRESS)
        return int(code)

    # ---- 보충 이벤트 ------------------------------------------------------------
    def add_supplement_events(self, tracking_id: "TrackingID", entity: Entity, now: datetime) -> None:
        for status, find_base in self.missing_event_checks():
            base = find_base(entity)
            if base is None or not base.when:
                continue
            entity.add_event(self.create_supplement_event(tracking_id, status, base.when, base.where, now))
            entity.sort_events_by_when()

    def create_supplement_event(
        self,
        tracking_id: "TrackingID",
        status: int,
        base_when: str,
        where: str,
        now: datetime,
    ) -> Event:
        # 기준 이벤트 1초 전, 같은 시간대 표기
        when = (parse_when(base_when) - timedelta(seconds=1)).isoformat()
        return Event(
            event_id=fingerprint(str(tracking_id), when, status),
            operator_code=self.code,
            tracking_num=tracking_id.tracking_num,
            status=status,
            what=describe(status),
            when=when,
            where=where or "",
            whom=self.name,
            notes=SUPPLEMENT_NOTES,
            data_provider=SUPPLEMENT_PROVIDER,
            extra={"updateMethod": "system-generated", "updatedAt": now.isoformat()},
            source_data={},
        )

    # ---- HTTP ------------------------------------------------------------------
    def _post(self, url: str, *, context: str, **kwargs) -> requests.Response:
        try:
            return requests.post(url, timeout=self.state.timeout, **kwargs)
        except requests.Timeout as e:
            logger.error(f"{self.code} request timed out: {url} [{context}]")
            raise CarrierError("504-01", f"{self.code} - {context}") from e
        except requests.RequestException as e:
            logger.error(f"{self.code} request failed: {e} [{context}]")
            raise CarrierError("502-01", f"{self.code} - {context}") from e

    def _json(self, response: requests.Response, *, context: str) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"{self.code} returned invalid JSON: {response.text[:500]} [{context}]")
            raise CarrierError("502-01", f"{self.code} - {context}") from e
        if not isinstance(data, dict):
            raise CarrierError("502-01", f"{self.code} - {context}")
        return data
