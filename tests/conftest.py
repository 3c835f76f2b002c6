# tests/conftest.py
import pytest
from rest_framework.test import APIClient

from domains.tracking.adapters import CarrierState, FdxAdapter, SfexAdapter
from domains.tracking.gateway import reset_gateway

TEST_CARRIERS = {
    "sfex": {
        "credentials": {"partner_id": "PARTNER", "check_word": "CHECKWORD"},
        "api_url": "https://sfex.test/std/service",
        "timezone": "Asia/Shanghai",
    },
    "fdx": {
        "credentials": {"client_id": "CLIENT", "client_secret": "SECRET"},
        "oauth_url": "https://fdx.test/oauth/token",
        "track_url": "https://fdx.test/track/v1/trackingnumbers",
    },
}


# ─────────────────────────────────────────────────────────────
# 택배사 설정: 모든 테스트는 가짜 자격증명 + 새 Gateway 로 시작
# ─────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def carrier_settings(settings):
    settings.CARRIERS = {code: {**conf, "credentials": dict(conf["credentials"])} for code, conf in TEST_CARRIERS.items()}
    settings.CARRIER_HTTP_TIMEOUT = 5
    reset_gateway()
    yield settings.CARRIERS
    reset_gateway()


@pytest.fixture
def carrier_state(carrier_settings):
    return CarrierState.init(carrier_settings, timeout=5)


@pytest.fixture
def sfex_adapter(carrier_state):
    return SfexAdapter(carrier_state)


@pytest.fixture
def fdx_adapter(carrier_state):
    return FdxAdapter(carrier_state)


# ─────────────────────────────────────────────────────────────
# 클라이언트
# ─────────────────────────────────────────────────────────────
@pytest.fixture
def api_client():
    return APIClient()
