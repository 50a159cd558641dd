import logging

import pytest
from hypothesis import given
from hypothesis.strategies import integers

from datebuilder import DateBuilder, is_local_non_unique

PARIS = "Europe/Paris"
MINUTE = 60_000
# 2024-10-27T01:00Z: clocks in Paris go back from 03:00 to 02:00
FALL_BACK = 1729990800000


class TestWinterDST:

    @pytest.mark.parametrize("minutes", range(1, 120))
    def test_doesnt_move_before(self, minutes):
        d = DateBuilder.date_time(2024, 10, 26, 23, 59).add_minutes(minutes)
        source = d.builder()
        d.move_to_next_local_unique_time()
        assert d == source

    @pytest.mark.parametrize("minutes", range(1, 120))
    def test_moves_to_the_end_of_the_repeated_hour(self, minutes):
        d = DateBuilder.date_time(2024, 10, 27, 1, 59).add_minutes(minutes)
        d.move_to_next_local_unique_time()
        assert d == DateBuilder.date_time(2024, 10, 27, 3, 0)

    def test_doesnt_move_after(self):
        d = DateBuilder.date_time(2024, 10, 27, 3, 0)
        source = d.builder()
        d.move_to_next_local_unique_time()
        assert d == source

    def test_just_before_the_repeated_hour(self):
        d = DateBuilder.date_time(2024, 10, 27, 1, 59)
        assert not d.is_local_non_unique_time()
        d.move_to_next_local_unique_time()
        assert (d.hour, d.minute) == (1, 59)

    def test_inside_the_repeated_hour(self):
        d = DateBuilder.date_time(2024, 10, 27, 2, 30)
        assert d.is_local_non_unique_time()
        d.move_to_next_local_unique_time()
        assert (d.hour, d.minute, d.second) == (3, 0, 0)
        assert d.time_zone_offset == 60

    def test_earlier_pass_of_the_repeated_hour(self):
        d = DateBuilder.date_time(
            2024, 10, 27, 2, 30, disambiguate="earlier"
        )
        assert d.time_zone_offset == 120
        d.move_to_next_local_unique_time()
        assert d.to_iso8601_offset_date_time() == "2024-10-27T03:00+01:00"

    def test_seconds_are_kept(self):
        d = DateBuilder.date_time(2024, 10, 27, 2, 30, 15, 250)
        d.move_to_next_local_unique_time()
        assert d.to_iso8601_local() == "2024-10-27T03:00:15.250"

    def test_returns_same_instance(self):
        d = DateBuilder.date_time(2024, 10, 27, 2, 30)
        assert d.move_to_next_local_unique_time() is d

    def test_other_zone(self):
        d = DateBuilder.date_time(
            2024, 11, 3, 1, 15, tz="America/New_York", disambiguate="earlier"
        )
        d.move_to_next_local_unique_time()
        assert d.to_iso8601_offset_date_time() == "2024-11-03T02:00-05:00"

    def test_logs_the_move(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="datebuilder"):
            DateBuilder.date_time(2024, 10, 27, 2, 30).move_to_next_local_unique_time()
        assert "2024-10-27T03:00+01:00" in caplog.text

    def test_doesnt_log_without_move(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="datebuilder"):
            DateBuilder.date_time(2024, 10, 27, 4, 0).move_to_next_local_unique_time()
        assert not caplog.records


class TestSummerDST:

    @pytest.mark.parametrize("minutes", range(1, 120))
    def test_doesnt_move_around(self, minutes):
        d = DateBuilder.date_time(2024, 3, 31, 0, 29).add_minutes(minutes)
        source = d.builder()
        d.move_to_next_local_unique_time()
        assert d == source


@given(integers(-4 * 3_600_000, 4 * 3_600_000))
def test_result_is_the_first_unique_time(delta):
    d = DateBuilder.milliseconds(FALL_BACK + delta, tz=PARIS)
    start = d.timestamp_millis()
    d.move_to_next_local_unique_time()
    result = d.timestamp_millis()
    assert result >= start
    assert not d.is_local_non_unique_time()
    # every minute skipped over was still repeated
    for instant in range(start, result, MINUTE):
        assert is_local_non_unique(instant, tz=PARIS)
    assert result - start < 2 * 60 * MINUTE + MINUTE


@given(integers(946_684_800_000, 2_208_988_800_000))
def test_unique_times_stay_put(instant):
    d = DateBuilder.milliseconds(instant, tz=PARIS)
    if d.is_local_non_unique_time():
        return
    assert d.move_to_next_local_unique_time().timestamp_millis() == instant


@given(integers(FALL_BACK + 3_600_000, FALL_BACK + 30 * 86_400_000))
def test_no_op_after_the_repeated_hour(instant):
    d = DateBuilder.milliseconds(instant, tz=PARIS)
    assert d.move_to_next_local_unique_time().timestamp_millis() == instant
