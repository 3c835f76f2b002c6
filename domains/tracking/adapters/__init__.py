# domains/tracking/adapters/__init__.py
from typing import Dict, Type

from ..carriers import Carrier
from ..errors import AppError
from .base import CarrierAdapter, Rule, Table, keyword_rule
from .fdx import FdxAdapter
from .sfex import SfexAdapter
from .state import CarrierState, TokenCache

# 지원 택배사는 닫힌 집합: 새 택배사는 여기와 Carrier 에 함께 추가
ADAPTER_CLASSES: Dict[str, Type[CarrierAdapter]] = {
    Carrier.SFEX: SfexAdapter,
    Carrier.FDX: FdxAdapter,
}


def adapter_class_for(carrier: str) -> Type[CarrierAdapter]:
    """carrier 코드 → 어댑터 클래스. 모르는 코드는 400-04."""
    cls = ADAPTER_CLASSES.get((carrier or "").strip().lower())
    if cls is None:
        raise AppError("400-04", f"model - OPERATOR_CODE[{carrier}]")
    return cls


__all__ = [
    "ADAPTER_CLASSES",
    "CarrierAdapter",
    "CarrierState",
    "FdxAdapter",
    "Rule",
    "SfexAdapter",
    "Table",
    "TokenCache",
    "adapter_class_for",
    "keyword_rule",
]
