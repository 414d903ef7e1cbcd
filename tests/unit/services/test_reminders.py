"""Unit tests for stalled-quote reminders."""

from datetime import datetime, timedelta, timezone

import pytest

from brokerdesk.core.result_types import Err
from brokerdesk.models.reminder import ReminderKind
from brokerdesk.services.notifications import NotificationService
from brokerdesk.services.reminders import QuoteReminderService

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def candidate(quote_id: str, age_days: float, evaluated: int, **overrides) -> dict:
    row = {
        "id": quote_id,
        "quote_number": f"Q-{quote_id}",
        "client_name": "Chidi Eze",
        "workflow_stage": "client-selection",
        "status": "sent",
        "created_at": NOW - timedelta(days=age_days),
        "broker_email": "broker@example.com",
        "evaluated_count": evaluated,
    }
    row.update(overrides)
    return row


@pytest.fixture
def service(mock_db, mock_sender, settings):
    return QuoteReminderService(mock_db, NotificationService(mock_sender), settings)


class TestCandidates:
    async def test_idle_quotes_need_offers_and_age(self, service, mock_db):
        mock_db.fetch.return_value = [
            candidate("old-with-offers", 4, 2),
            candidate("fresh", 1, 2),
            candidate("no-offers", 5, 0),
        ]

        result = await service.get_idle_quotes(NOW)

        assert [c.quote_id for c in result.ok_value] == ["old-with-offers"]
        assert mock_db.fetch.await_args.args[1:] == (
            ["quote-evaluation", "client-selection"],
            "sent",
        )

    async def test_no_match_quotes_have_no_offers(self, service, mock_db):
        mock_db.fetch.return_value = [
            candidate("silent", 3, 0, workflow_stage="rfq-generation"),
            candidate("answered", 6, 1, workflow_stage="rfq-generation"),
        ]

        result = await service.get_quotes_without_insurer_match(NOW)

        assert [c.quote_id for c in result.ok_value] == ["silent"]

    async def test_naive_timestamps_are_treated_as_utc(self, service, mock_db):
        naive = (NOW - timedelta(days=10)).replace(tzinfo=None)
        mock_db.fetch.return_value = [candidate("naive", 0, 1, created_at=naive)]

        result = await service.get_idle_quotes(NOW)

        assert len(result.ok_value) == 1

    async def test_batch_combines_both_lists(self, service, mock_db):
        async def fetch(query, *args):
            if "ANY($1::text[])" in query:
                return [candidate("idle-1", 4, 1)]
            return [candidate("rfq-1", 4, 0, workflow_stage="rfq-generation")]

        mock_db.fetch.side_effect = fetch

        batch = (await service.get_quotes_needing_reminders(NOW)).ok_value

        assert [c.quote_id for c in batch.idle_quotes] == ["idle-1"]
        assert [c.quote_id for c in batch.no_match_quotes] == ["rfq-1"]

    async def test_batch_fails_if_a_query_fails(self, service, mock_db):
        mock_db.fetch.side_effect = ConnectionError("db down")

        result = await service.get_quotes_needing_reminders(NOW)

        assert result.err_value == "Failed to load idle quotes: db down"

    async def test_organization_scopes_both_queries(self, service, mock_db):
        await service.get_quotes_needing_reminders(NOW, organization_id="org-1")

        idle_call, no_match_call = mock_db.fetch.await_args_list
        assert idle_call.args[0].endswith("AND q.organization_id = $3")
        assert idle_call.args[3] == "org-1"
        assert no_match_call.args[0].endswith("AND q.organization_id = $2")
        assert no_match_call.args[1:] == ("rfq-generation", "org-1")


class TestSendQuoteReminders:
    async def test_sends_to_owning_broker(self, service, mock_db, mock_sender):
        mock_db.fetch.return_value = [candidate("q1", 4, 0)]

        dispatch = (
            await service.send_quote_reminders(["q1"], ReminderKind.NO_INSURER_MATCH)
        ).ok_value

        assert dispatch.sent == 1
        assert dispatch.failed == []
        email = mock_sender.send.await_args.args[0]
        assert email.recipients == ("broker@example.com",)
        assert "no insurer has responded" in email.body

    async def test_unknown_and_unreachable_quotes_fail(self, service, mock_db):
        mock_db.fetch.return_value = [
            candidate("q1", 4, 1),
            candidate("q2", 4, 1, broker_email=None),
        ]

        dispatch = (
            await service.send_quote_reminders(["q1", "q2", "q3"], ReminderKind.IDLE)
        ).ok_value

        assert dispatch.requested == 3
        assert dispatch.sent == 1
        assert dispatch.failed == ["q2", "q3"]

    async def test_sender_failure_is_counted(self, service, mock_db, mock_sender):
        mock_db.fetch.return_value = [candidate("q1", 4, 1)]
        mock_sender.send.return_value = Err("Email service rejected message: HTTP 500")

        dispatch = (
            await service.send_quote_reminders(["q1"], ReminderKind.IDLE)
        ).ok_value

        assert dispatch.failed == ["q1"]

    async def test_empty_request(self, service, mock_db):
        dispatch = (await service.send_quote_reminders([], ReminderKind.IDLE)).ok_value

        assert dispatch.requested == 0
        mock_db.fetch.assert_not_awaited()

    async def test_quotes_of_other_organizations_are_not_reminded(
        self, service, mock_db, mock_sender
    ):
        mock_db.fetch.return_value = []

        dispatch = (
            await service.send_quote_reminders(["q1"], ReminderKind.IDLE, "org-1")
        ).ok_value

        assert dispatch.failed == ["q1"]
        assert mock_db.fetch.await_args.args[1:] == (["q1"], "org-1")
        mock_sender.send.assert_not_awaited()
