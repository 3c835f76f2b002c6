# domains/tracking/gateway.py
from __future__ import annotations

import logging
import threading
from typing import Dict, List, Mapping, Optional, Sequence

from django.conf import settings

from .adapters import ADAPTER_CLASSES, CarrierAdapter, CarrierState
from .entity import Entity
from .errors import AppError
from .status_map import describe
from .tracking_id import TrackingID

logger = logging.getLogger(__name__)


class Gateway:
    """
    택배사 어댑터 묶음에 대한 단일 진입점.
    어댑터 인스턴스는 기동 시 한 번 만들어지고 같은 CarrierState 를 공유한다.
    """

    def __init__(self, state: CarrierState, adapters: Optional[Dict[str, CarrierAdapter]] = None):
        self.state = state
        if adapters is None:
            adapters = {str(code): cls(state) for code, cls in ADAPTER_CLASSES.items()}
        self.adapters = adapters

    @classmethod
    def from_settings(cls) -> "Gateway":
        state = CarrierState.init(
            getattr(settings, "CARRIERS", {}),
            timeout=getattr(settings, "CARRIER_HTTP_TIMEOUT", 10),
        )
        return cls(state)

    def adapter(self, carrier: str) -> CarrierAdapter:
        adapter = self.adapters.get(carrier)
        if adapter is None:
            raise AppError("400-04", f"gateway - OPERATOR_CODE[{carrier}]")
        return adapter

    # ---- 능력 확인 (I/O 없음) ----------------------------------------------------
    def is_operator_active(self, carrier: str) -> bool:
        adapter = self.adapters.get(carrier)
        return adapter is not None and adapter.is_active()

    def batch_size(self, carrier: str) -> int:
        return max(1, self.adapter(carrier).batch_size)

    def active_operators(self) -> List[Dict[str, str]]:
        return [
            {"code": code, "name": adapter.name}
            for code, adapter in self.adapters.items()
            if adapter.is_active()
        ]

    # ---- 파라미터 ----------------------------------------------------------------
    def get_extra_params(self, carrier: str, query: Mapping[str, str]) -> Dict[str, str]:
        return self.adapter(carrier).get_extra_params(query)

    def validate_params(self, carrier: str, params: Mapping[str, str]) -> None:
        self.adapter(carrier).validate_params(params)

    def validate_stored_entity(self, entity: Entity, tracking_id: TrackingID, params: Mapping[str, str]) -> None:
        self.adapter(tracking_id.carrier).validate_stored_entity(entity, params)

    # ---- 조회 --------------------------------------------------------------------
    def request_where_is(
        self,
        tracking_id: TrackingID,
        extra_params: Mapping[str, str],
        update_method: str,
    ) -> Entity:
        """
        비활성 택배사 → 500-01, 필수 파라미터 누락 → 400-03,
        그 외 어댑터 에러는 그대로 전파한다.
        """
        adapter = self.adapter(tracking_id.carrier)
        if not adapter.is_active():
            raise AppError("500-01", f"{tracking_id.carrier} - INACTIVE")
        adapter.validate_params(extra_params)

        entity = adapter.where_is(tracking_id, extra_params, update_method)
        self._audit(entity)
        return entity

    def request_where_is_batch(self, tracking_ids: Sequence[TrackingID], update_method: str) -> List[Entity]:
        """같은 택배사 운송장 묶음 조회. 데이터가 없는 번호는 결과에서 빠진다."""
        if not tracking_ids:
            return []
        carrier = tracking_ids[0].carrier
        adapter = self.adapter(carrier)
        if not adapter.is_active():
            raise AppError("500-01", f"{carrier} - INACTIVE")

        entities = adapter.where_is_batch(tracking_ids, update_method)
        for entity in entities:
            self._audit(entity)
        return entities

    @staticmethod
    def _audit(entity: Entity) -> None:
        if entity.is_completed():
            missing = entity.get_missing_major_statuses()
            if missing:
                labels = ", ".join(f"{code} ({describe(code)})" for code in missing)
                logger.warning(f"{entity.id} is completed but missing major statuses: {labels}")

    def teardown(self) -> None:
        self.state.teardown()


_gateway: Optional[Gateway] = None
_gateway_lock = threading.Lock()


def get_gateway() -> Gateway:
    """프로세스 단위 Gateway (최초 호출 시 settings 에서 생성)."""
    global _gateway
    if _gateway is None:
        with _gateway_lock:
            if _gateway is None:
                _gateway = Gateway.from_settings()
    return _gateway


def reset_gateway() -> None:
    """토큰 캐시를 비우고 다음 get_gateway() 에서 다시 만든다(테스트/설정 변경용)."""
    global _gateway
    with _gateway_lock:
        if _gateway is not None:
            _gateway.teardown()
        _gateway = None
