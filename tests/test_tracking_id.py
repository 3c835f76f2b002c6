# tests/test_tracking_id.py
import pytest

from domains.tracking.errors import AppError
from domains.tracking.tracking_id import TrackingID, parse_tracking_id


@pytest.mark.parametrize(
    "slug, code",
    [
        ("", "400-01"),
        ("   ", "400-01"),
        (None, "400-01"),
        ("nodash", "400-05"),
        ("-123", "400-05"),
        ("sfex-", "400-05"),
        ("bogus-123", "400-04"),
        ("sfex-1", "400-02"),
        ("fdx-12345", "400-02"),
    ],
)
def test_parse_rejects_with_stable_codes(slug, code):
    with pytest.raises(AppError) as ei:
        TrackingID.parse(slug)
    assert ei.value.code == code

    err, tid = parse_tracking_id(slug)
    assert err == code
    assert tid is None


def test_parse_splits_on_first_hyphen_and_round_trips():
    tid = TrackingID.parse(" SFEX-SF1234567890123 ")
    assert tid.carrier == "sfex"
    assert tid.tracking_num == "SF1234567890123"
    assert str(tid) == "sfex-SF1234567890123"
    assert tid.to_string() == "sfex-SF1234567890123"


@pytest.mark.parametrize("num", ["123456789012", "123456789012345", "1" * 20, "1" * 22])
def test_fdx_accepts_supported_lengths(num):
    err, tid = parse_tracking_id(f"fdx-{num}")
    assert err is None
    assert tid.tracking_num == num


def test_number_after_first_hyphen_keeps_remaining_hyphens():
    # 두 번째 하이픈부터는 번호의 일부 → 형식 검사에서 걸린다
    err, _ = parse_tracking_id("fdx-1234-56789012")
    assert err == "400-02"
