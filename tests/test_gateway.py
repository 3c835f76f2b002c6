# tests/test_gateway.py
import pytest

from factories import FDX_ID, PHONE, SFEX_ID, sfex_basic_routes, sfex_result

from domains.tracking.adapters import FdxAdapter, SfexAdapter, adapter_class_for
from domains.tracking.errors import AppError
from domains.tracking.gateway import Gateway, get_gateway, reset_gateway
from domains.tracking.tracking_id import TrackingID


def test_get_gateway_is_built_once_from_settings():
    gw = get_gateway()
    assert get_gateway() is gw
    assert isinstance(gw.adapter("sfex"), SfexAdapter)
    assert isinstance(gw.adapter("fdx"), FdxAdapter)
    reset_gateway()
    assert get_gateway() is not gw


def test_adapter_registry_is_closed():
    assert adapter_class_for("SFEX") is SfexAdapter
    with pytest.raises(AppError) as ei:
        adapter_class_for("ups")
    assert ei.value.code == "400-04"


def test_operator_activity_follows_credentials(settings):
    settings.CARRIERS["fdx"]["credentials"]["client_id"] = ""
    gw = Gateway.from_settings()
    assert gw.is_operator_active("sfex")
    assert not gw.is_operator_active("fdx")
    assert not gw.is_operator_active("ups")
    assert gw.active_operators() == [{"code": "sfex", "name": "SF Express"}]

    with pytest.raises(AppError) as ei:
        gw.request_where_is(TrackingID.parse(FDX_ID), {}, "manual-pull")
    assert ei.value.code == "500-01"


def test_request_where_is_requires_carrier_params(monkeypatch):
    gw = get_gateway()
    called = []
    monkeypatch.setattr(SfexAdapter, "get_route", lambda self, num, params: called.append(num))

    with pytest.raises(AppError) as ei:
        gw.request_where_is(TrackingID.parse(SFEX_ID), {"phonenum": ""}, "manual-pull")
    assert ei.value.code == "400-03"
    assert called == []


def test_request_where_is_dispatches_fetch_then_convert(monkeypatch):
    gw = get_gateway()
    monkeypatch.setattr(SfexAdapter, "get_route", lambda self, num, params: sfex_result(sfex_basic_routes()))

    entity = gw.request_where_is(TrackingID.parse(SFEX_ID), {"phonenum": PHONE}, "manual-pull")
    assert entity.id == SFEX_ID
    assert entity.params == {"phonenum": PHONE}
    assert [e.status for e in entity.events] == [3100, 3002]


def test_request_where_is_propagates_adapter_errors(monkeypatch):
    gw = get_gateway()

    def not_found(self, num, params):
        raise AppError("404-01", "fdx - NOTFOUND")

    monkeypatch.setattr(FdxAdapter, "get_route", not_found)
    with pytest.raises(AppError) as ei:
        gw.request_where_is(TrackingID.parse(FDX_ID), {}, "auto-pull")
    assert ei.value.code == "404-01"


def test_extra_params_and_stored_entity_checks(monkeypatch):
    gw = get_gateway()
    assert gw.get_extra_params("sfex", {"phonenum": PHONE, "refresh": "true"}) == {"phonenum": PHONE}
    assert gw.get_extra_params("fdx", {"refresh": "true"}) == {}

    monkeypatch.setattr(SfexAdapter, "get_route", lambda self, num, params: sfex_result(sfex_basic_routes()))
    tid = TrackingID.parse(SFEX_ID)
    entity = gw.request_where_is(tid, {"phonenum": PHONE}, "manual-pull")
    with pytest.raises(AppError) as ei:
        gw.validate_stored_entity(entity, tid, {"phonenum": "0000"})
    assert ei.value.code == "400-03"
