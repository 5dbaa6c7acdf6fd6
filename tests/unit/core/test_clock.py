from datetime import timezone

from skillforge.core.time import from_epoch_ms, iso_z, utc_now, utc_now_iso, utc_now_ms


def test_utc_now_is_aware() -> None:
    assert utc_now().tzinfo == timezone.utc


def test_epoch_ms_round_trip() -> None:
    ms = utc_now_ms()
    assert abs(int(from_epoch_ms(ms).timestamp() * 1000) - ms) <= 1


def test_iso_z() -> None:
    assert utc_now_iso().endswith("Z")
    assert iso_z(from_epoch_ms(0)) == "1970-01-01T00:00:00.000000Z"
    assert iso_z(None) is None
