"""Calendar helper and settings tests"""

from datetime import date, datetime, timezone

import pytest

from plantsync.core.config import Settings
from plantsync.core.dates import day_context, end_of_month, local_today, months_back, months_since, parse_day

TZ = "America/Sao_Paulo"


class TestDayContext:
    """Test local day resolution"""

    def test_local_day_differs_from_utc(self):
        # 02:00 UTC is still the previous evening in Sao Paulo
        now = datetime(2026, 10, 18, 2, 0, tzinfo=timezone.utc)
        assert local_today(TZ, now) == date(2026, 10, 17)

    def test_yesterday(self):
        now = datetime(2026, 10, 18, 2, 0, tzinfo=timezone.utc)
        ctx = day_context("yesterday", TZ, now)
        assert ctx.day == date(2026, 10, 16)
        assert ctx.today == date(2026, 10, 17)
        assert not ctx.is_today
        assert ctx.selector == "yesterday"

    def test_yesterday_across_new_year(self):
        now = datetime(2027, 1, 1, 12, 0, tzinfo=timezone.utc)
        ctx = day_context("yesterday", TZ, now)
        assert ctx.day == date(2026, 12, 31)


class TestMonthWindows:
    """Test backfill month windows"""

    def test_months_back_newest_first(self):
        assert months_back(date(2026, 1, 15), 2) == [(2026, 1), (2025, 12), (2025, 11)]

    def test_months_back_zero(self):
        assert months_back(date(2026, 5, 1), 0) == [(2026, 5)]

    def test_months_since_anchor_this_year(self):
        assert months_since(date(2026, 6, 3), 4) == [(2026, 4), (2026, 5), (2026, 6)]

    def test_months_since_anchor_month(self):
        assert months_since(date(2026, 4, 1), 4) == [(2026, 4)]

    def test_months_since_crosses_year(self):
        months = months_since(date(2026, 2, 10), 4)
        assert months[:2] == [(2025, 4), (2025, 5)]
        assert months[-2:] == [(2026, 1), (2026, 2)]

    def test_end_of_month(self):
        assert end_of_month(2024, 2) == date(2024, 2, 29)
        assert end_of_month(2026, 12) == date(2026, 12, 31)


class TestParseDay:
    """Test tolerant date parsing"""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2026-10-01", date(2026, 10, 1)),
            ("20261001", date(2026, 10, 1)),
            ("2026-10-01T00:00:00", date(2026, 10, 1)),
            ("", None),
            ("not a date", None),
            ("20261301", None),
        ],
    )
    def test_parse(self, value, expected):
        assert parse_day(value) == expected


class TestSettings:
    """Test derived settings"""

    def test_history_concurrency_capped(self):
        assert Settings(_env_file=None, DATABASE_URL="sqlite://", HISTORY_CONCURRENCY=20).history_concurrency == 6
        assert Settings(_env_file=None, DATABASE_URL="sqlite://", HISTORY_CONCURRENCY=0).history_concurrency == 1

    def test_cron_key_policy(self):
        assert not Settings(_env_file=None, DATABASE_URL="sqlite://", ENV="dev").cron_key_required
        assert Settings(_env_file=None, DATABASE_URL="sqlite://", ENV="prod").cron_key_required
        assert Settings(_env_file=None, DATABASE_URL="sqlite://", ENV="dev", CRON_KEY="k").cron_key_required

    def test_docs_follow_environment(self):
        assert Settings(_env_file=None, DATABASE_URL="sqlite://", ENV="dev").docs_enabled
        assert not Settings(_env_file=None, DATABASE_URL="sqlite://", ENV="prod").docs_enabled
