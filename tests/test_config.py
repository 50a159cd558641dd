import time
from datetime import timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytest
from dateutil.tz import tzlocal

from datebuilder import (
    Ambiguous,
    DateBuilder,
    DateConstant,
    DoesntExistInZone,
    default_tz,
    resolve_tz,
    set_default_tz,
)

from .common import configured_tz


class TestResolveTz:

    def test_key(self):
        assert resolve_tz("America/New_York") == ZoneInfo("America/New_York")

    def test_tzinfo(self):
        fixed = timezone(timedelta(hours=3))
        assert resolve_tz(fixed) is fixed

    def test_none_is_default(self):
        assert resolve_tz(None) is default_tz()
        assert resolve_tz() == ZoneInfo("Europe/Paris")

    def test_invalid_key(self):
        with pytest.raises(ZoneInfoNotFoundError):
            resolve_tz("Nowhere/Special")

    def test_invalid_type(self):
        with pytest.raises(TypeError):
            resolve_tz(5)  # type: ignore[arg-type]


class TestDefaultTz:

    def test_used_by_constructors(self):
        with configured_tz("Asia/Tokyo"):
            d = DateBuilder.date_time(2024, 1, 1, 9, 0)
            assert d.tz == ZoneInfo("Asia/Tokyo")
            assert d.time_zone_offset == 540
            assert DateConstant.milliseconds(0).hour == 9

    def test_existing_values_keep_their_zone(self):
        d = DateBuilder.date_time(2024, 1, 1, 9, 0)
        with configured_tz("Asia/Tokyo"):
            assert d.hour == 9
            assert d.tz == ZoneInfo("Europe/Paris")
            assert d.builder().tz == ZoneInfo("Europe/Paris")

    def test_fixed_offset(self):
        with configured_tz(timezone(timedelta(hours=-2))):
            d = DateBuilder.milliseconds(0)
            assert d.to_iso8601_offset_date_time() == "1969-12-31T22:00-02:00"
            assert not d.is_local_non_unique_time()

    def test_environment_variable(self, monkeypatch):
        monkeypatch.setenv("DATEBUILDER_TZ", "America/New_York")
        with configured_tz(None):
            assert default_tz() == ZoneInfo("America/New_York")
            assert DateBuilder.milliseconds(0).hour == 19

    def test_system_zone(self, monkeypatch):
        monkeypatch.delenv("DATEBUILDER_TZ", raising=False)
        with configured_tz(None):
            assert isinstance(default_tz(), tzlocal)

    def test_reset_keeps_later_calls_consistent(self):
        with configured_tz("UTC"):
            set_default_tz("Asia/Tokyo")
            assert default_tz() == ZoneInfo("Asia/Tokyo")
        assert default_tz() == ZoneInfo("Europe/Paris")


@pytest.fixture
def system_paris(monkeypatch):
    # a POSIX rule for Paris, so no zone database is needed
    monkeypatch.setenv("TZ", "CET-1CEST,M3.5.0,M10.5.0/3")
    monkeypatch.delenv("DATEBUILDER_TZ", raising=False)
    time.tzset()
    try:
        with configured_tz(None):
            yield
    finally:
        monkeypatch.undo()
        time.tzset()


@pytest.mark.skipif(not hasattr(time, "tzset"), reason="requires time.tzset")
@pytest.mark.usefixtures("system_paris")
class TestSystemZone:

    def test_is_system_zone(self):
        assert isinstance(default_tz(), tzlocal)
        assert DateBuilder.date_time(2024, 7, 1, 10, 0).time_zone_offset == 120

    def test_skipped_time_is_shifted_forward(self):
        d = DateBuilder.date_time(2024, 3, 31, 2, 30)
        assert d.to_iso8601_offset_date_time() == "2024-03-31T03:30+02:00"
        d = DateBuilder.date_time(2024, 3, 31, 2, 30, tz=tzlocal())
        assert d.to_iso8601_offset_date_time() == "2024-03-31T03:30+02:00"

    def test_skipped_time_earlier(self):
        d = DateBuilder.date_time(2024, 3, 31, 2, 30, disambiguate="earlier")
        assert d.to_iso8601_offset_date_time() == "2024-03-31T01:30+01:00"

    def test_skipped_time_raise(self):
        with pytest.raises(DoesntExistInZone):
            DateBuilder.date_time(2024, 3, 31, 2, 30, disambiguate="raise")

    def test_setters_into_skipped_time(self):
        d = DateBuilder.date(2024, 3, 31).set_hour(2).set_minute(30)
        assert d.to_iso8601_offset_date_time() == "2024-03-31T03:30+02:00"

    def test_add_days_into_skipped_time(self):
        d = DateBuilder.date_time(2024, 3, 30, 2, 30).add_days(1)
        assert d.to_iso8601_offset_date_time() == "2024-03-31T03:30+02:00"

    def test_local_iso8601_in_skipped_time(self):
        d = DateBuilder.iso8601("2024-03-31T02:30")
        assert d.to_iso8601_offset_date_time() == "2024-03-31T03:30+02:00"

    def test_repeated_time(self):
        later = DateBuilder.date_time(2024, 10, 27, 2, 30)
        assert later.to_iso8601_offset_date_time() == "2024-10-27T02:30+01:00"
        earlier = DateBuilder.date_time(
            2024, 10, 27, 2, 30, disambiguate="earlier"
        )
        assert earlier.to_iso8601_offset_date_time() == "2024-10-27T02:30+02:00"
        assert earlier.is_local_non_unique_time()
        with pytest.raises(Ambiguous):
            DateBuilder.date_time(2024, 10, 27, 2, 30, disambiguate="raise")

    def test_move_to_next_local_unique_time(self):
        d = DateBuilder.date_time(2024, 10, 27, 2, 30, disambiguate="earlier")
        d.move_to_next_local_unique_time()
        assert d.to_iso8601_offset_date_time() == "2024-10-27T03:00+01:00"
