from datetime import date

from stats.peaks import update_peak

EARLIER = date(2026, 1, 5)
TODAY = date(2026, 3, 1)


class TestUpdatePeak:
    def test_first_value_is_a_new_peak(self):
        result = update_peak(12.5, None, None, TODAY)
        assert result.peak == 12.5
        assert result.peak_date == TODAY
        assert result.is_new_peak

    def test_higher_value_replaces_peak(self):
        result = update_peak(30.0, 25.0, EARLIER, TODAY)
        assert result.peak == 30.0
        assert result.peak_date == TODAY
        assert result.is_new_peak

    def test_tie_keeps_original_date(self):
        result = update_peak(25.0, 25.0, EARLIER, TODAY)
        assert result.peak == 25.0
        assert result.peak_date == EARLIER
        assert not result.is_new_peak

    def test_lower_value_keeps_stored_peak(self):
        result = update_peak(10.0, 25.0, EARLIER, TODAY)
        assert result.peak == 25.0
        assert result.peak_date == EARLIER
        assert not result.is_new_peak

    def test_zero_against_missing_peak(self):
        result = update_peak(0.0, None, None, TODAY)
        assert result.peak == 0.0
        assert result.is_new_peak
