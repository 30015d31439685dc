"""
Tests for the weekly digest.
"""

from datetime import date, datetime, timedelta

import pytest

from reconciler.digest import WeeklyDigestBuilder, latest_change_per_book
from reconciler.models import DigestStatus
from reconciler.notifications import NotificationError
from tracker.database import RecordStoreError
from tracker.models import LibraryStatus, StatusChangeRecord, StatusSource

NOW = datetime(2024, 1, 23, 9, 0, 0)


def change(book_id, old, new, days_ago=1, hours=0):
    return StatusChangeRecord(
        book_id=book_id,
        old_status=old,
        new_status=new,
        changed_at=NOW - timedelta(days=days_ago, hours=hours),
        source=StatusSource.CATALOG_CHECK,
    )


@pytest.fixture
def builder(app_config, record_store, fake_notifier, clock):
    return WeeklyDigestBuilder(app_config, record_store, fake_notifier, clock=clock)


class TestLatestChangePerBook:
    """Test cases for latest_change_per_book."""

    def test_keeps_latest_record(self):
        older = change("b1", LibraryStatus.NOT_AVAILABLE, LibraryStatus.AVAILABLE_TO_HOLD, days_ago=3)
        newer = change("b1", LibraryStatus.AVAILABLE_TO_HOLD, LibraryStatus.AVAILABLE_TO_CHECKOUT, days_ago=1)

        latest = latest_change_per_book([older, newer])

        assert latest == [newer]

    def test_one_per_book_newest_first(self):
        records = [
            change("b1", LibraryStatus.NOT_AVAILABLE, LibraryStatus.AVAILABLE_TO_HOLD, days_ago=5),
            change("b2", LibraryStatus.NOT_AVAILABLE, LibraryStatus.AVAILABLE_TO_HOLD, days_ago=2),
            change("b1", LibraryStatus.AVAILABLE_TO_HOLD, LibraryStatus.ON_HOLD, days_ago=4),
        ]

        latest = latest_change_per_book(records)

        assert [r.book_id for r in latest] == ["b2", "b1"]
        assert latest[1].new_status == LibraryStatus.ON_HOLD


class TestWeeklyDigestBuilder:
    """Test cases for WeeklyDigestBuilder."""

    @pytest.mark.asyncio
    async def test_nothing_to_report_is_skipped(self, builder, fake_notifier):
        outcome = await builder.build_and_send()

        assert outcome.status == DigestStatus.SKIPPED
        assert fake_notifier.sent == []

    @pytest.mark.asyncio
    async def test_history_outside_window_is_skipped(self, builder, record_store, fake_notifier, make_book):
        record_store.add(make_book("old", release_date=date(2023, 6, 1)))
        record_store.history.append(
            change("old", LibraryStatus.NOT_AVAILABLE, LibraryStatus.AVAILABLE_TO_HOLD, days_ago=8)
        )

        outcome = await builder.build_and_send()

        assert outcome.status == DigestStatus.SKIPPED
        assert fake_notifier.sent == []

    @pytest.mark.asyncio
    async def test_two_changes_collapse_to_latest_pair(self, builder, record_store, fake_notifier, make_book):
        record_store.add(make_book("b1", title="The Doors of Stone",
                                   library_status=LibraryStatus.AVAILABLE_TO_CHECKOUT, catalog_id="42"))
        record_store.history.extend([
            change("b1", LibraryStatus.NOT_AVAILABLE, LibraryStatus.AVAILABLE_TO_HOLD, days_ago=4),
            change("b1", LibraryStatus.AVAILABLE_TO_HOLD, LibraryStatus.AVAILABLE_TO_CHECKOUT, days_ago=1),
        ])

        outcome = await builder.build_and_send()

        assert outcome.status == DigestStatus.SENT
        assert outcome.status_changes_count == 1
        assert outcome.email_id == "email_1"

        html_body = fake_notifier.sent[0]["html"]
        assert html_body.count("The Doors of Stone") == 1
        assert "Available to Hold → Borrow" in html_body
        assert "Not Available → Available to Hold" not in html_body
        assert "https://sfpl.overdrive.com/media/42" in html_body
        assert "View on Overdrive" in html_body

    @pytest.mark.asyncio
    async def test_upcoming_releases_are_listed(self, builder, record_store, fake_notifier, make_book):
        record_store.add(
            make_book("soon", title="Sunrise on the Reaping", author="Suzanne Collins",
                      release_date=date(2024, 1, 25), library_status=LibraryStatus.NOT_RELEASED),
            make_book("later", title="Far Future", release_date=date(2024, 3, 1),
                      library_status=LibraryStatus.NOT_RELEASED),
        )

        outcome = await builder.build_and_send()

        assert outcome.status == DigestStatus.SENT
        assert outcome.upcoming_count == 1
        sent = fake_notifier.sent[0]
        assert sent["subject"] == "📚 Next Reads Weekly Summary"
        assert sent["to"] == "reader@example.com"
        assert "Releasing This Week" in sent["html"]
        assert "Jan 25, 2024" in sent["html"]
        assert "Far Future" not in sent["html"]
        assert "Library Updates" not in sent["html"]

    @pytest.mark.asyncio
    async def test_history_for_missing_book_is_dropped(self, builder, record_store, fake_notifier):
        record_store.history.append(
            change("deleted", LibraryStatus.NOT_AVAILABLE, LibraryStatus.AVAILABLE_TO_HOLD)
        )

        outcome = await builder.build_and_send()

        assert outcome.status == DigestStatus.SKIPPED
        assert fake_notifier.sent == []

    @pytest.mark.asyncio
    async def test_non_actionable_change_has_no_catalog_link(self, builder, record_store, fake_notifier, make_book):
        record_store.add(make_book("b1", title="Gone Again", release_date=date(2023, 12, 1),
                                   library_status=LibraryStatus.NOT_AVAILABLE, catalog_id="7"))
        record_store.history.append(
            change("b1", LibraryStatus.AVAILABLE_TO_HOLD, LibraryStatus.NOT_AVAILABLE)
        )

        await builder.build_and_send()

        html_body = fake_notifier.sent[0]["html"]
        assert "Available to Hold → Not Available" in html_body
        assert "View on Overdrive" not in html_body

    @pytest.mark.asyncio
    async def test_titles_are_escaped(self, builder, record_store, fake_notifier, make_book):
        record_store.add(make_book("b1", title="<b>Bold</b> & Brave", release_date=date(2024, 1, 24)))

        await builder.build_and_send()

        html_body = fake_notifier.sent[0]["html"]
        assert "&lt;b&gt;Bold&lt;/b&gt; &amp; Brave" in html_body

    @pytest.mark.asyncio
    async def test_missing_configuration_fails_without_sending(
        self, unconfigured_config, record_store, fake_notifier, clock, make_book
    ):
        record_store.add(make_book("soon", release_date=date(2024, 1, 24)))
        builder = WeeklyDigestBuilder(unconfigured_config, record_store, fake_notifier, clock=clock)

        outcome = await builder.build_and_send()

        assert outcome.status == DigestStatus.FAILED
        assert outcome.error
        assert fake_notifier.sent == []

    @pytest.mark.asyncio
    async def test_missing_notifier_fails(self, app_config, record_store, clock):
        builder = WeeklyDigestBuilder(app_config, record_store, None, clock=clock)

        outcome = await builder.build_and_send()

        assert outcome.status == DigestStatus.FAILED

    @pytest.mark.asyncio
    async def test_store_failure_is_reported(self, builder, record_store, fake_notifier):
        record_store.history_error = RecordStoreError("timeout")

        outcome = await builder.build_and_send()

        assert outcome.status == DigestStatus.FAILED
        assert outcome.error == "timeout"
        assert fake_notifier.sent == []

    @pytest.mark.asyncio
    async def test_send_failure_is_reported(self, builder, record_store, fake_notifier, make_book):
        record_store.add(make_book("soon", release_date=date(2024, 1, 24)))
        fake_notifier.error = NotificationError("Email provider returned 422")

        outcome = await builder.build_and_send()

        assert outcome.status == DigestStatus.FAILED
        assert outcome.upcoming_count == 1
        assert "422" in outcome.error
