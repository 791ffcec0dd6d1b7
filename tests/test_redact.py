from __future__ import annotations

from transitmap._redact import truncate_for_log


def test_truncate_for_log_limits_sequences() -> None:
    snapshot = [{"id": str(i)} for i in range(1200)]

    shortened = truncate_for_log(snapshot, max_items=3)

    assert shortened[:3] == [{"id": "0"}, {"id": "1"}, {"id": "2"}]
    assert shortened[3] == "<+1197 more>"


def test_truncate_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    shortened = truncate_for_log({"value": long_value}, max_string=10)
    assert shortened["value"].startswith("x" * 10)
    assert "<truncated>" in shortened["value"]


def test_truncate_for_log_keeps_scalars() -> None:
    assert truncate_for_log({"lat": 52.2, "type": 0, "ok": True, "none": None}) == {
        "lat": 52.2,
        "type": 0,
        "ok": True,
        "none": None,
    }
    assert truncate_for_log(b"\x00\x01") == "<bytes:2b>"
