"""Unit tests for quote payment transactions."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from brokerdesk.models.quote import PaymentStatus
from brokerdesk.services.payments import PaymentTransactionService


@pytest.fixture
def service(mock_db, settings):
    return PaymentTransactionService(mock_db, settings)


class TestEnsureForQuote:
    def test_requires_database(self):
        with pytest.raises(ValueError, match="Database connection required"):
            PaymentTransactionService(None)

    async def test_returns_existing_transaction(self, service, mock_db, payment_row):
        row = payment_row(status="completed")
        mock_db.fetch.return_value = [row]

        result = await service.ensure_for_quote("quote-1")

        assert result.ok_value.id == row["id"]
        mock_db.execute.assert_not_awaited()
        mock_db.fetchrow.assert_not_awaited()

    async def test_duplicates_are_removed_newest_kept(
        self, service, mock_db, payment_row
    ):
        newest, older, oldest = payment_row(), payment_row(), payment_row()
        mock_db.fetch.return_value = [newest, older, oldest]

        result = await service.ensure_for_quote("quote-1")

        assert result.ok_value.id == newest["id"]
        assert mock_db.execute.await_args.args[1] == [older["id"], oldest["id"]]

    async def test_cleanup_failure_still_returns_newest(
        self, service, mock_db, payment_row
    ):
        newest = payment_row()
        mock_db.fetch.return_value = [newest, payment_row()]
        mock_db.execute.side_effect = RuntimeError("lock timeout")

        result = await service.ensure_for_quote("quote-1")

        assert result.ok_value.id == newest["id"]

    async def test_creates_pending_from_quote(self, service, mock_db, payment_row):
        mock_db.fetchrow.side_effect = [
            {"client_id": "client-1", "premium": Decimal("250000.00"),
             "organization_id": "org-1"},
            payment_row(),
        ]

        result = await service.ensure_for_quote("quote-1")

        assert result.ok_value.status == PaymentStatus.PENDING
        insert = mock_db.fetchrow.await_args_list[1].args
        assert insert[1:8] == (
            "quote-1",
            "client-1",
            "org-1",
            Decimal("250000.00"),
            "NGN",
            "bank_transfer",
            "pending",
        )
        assert insert[8]["auto_created"] is True

    async def test_explicit_values_skip_quote_lookup(self, service, mock_db, payment_row):
        mock_db.fetchrow.return_value = payment_row(amount=Decimal("5000"))

        result = await service.ensure_for_quote(
            "quote-1", "client-1", Decimal("5000"), "org-1"
        )

        assert result.is_ok()
        assert mock_db.fetchrow.await_count == 1

    async def test_quote_without_client(self, service, mock_db):
        mock_db.fetchrow.return_value = {
            "client_id": None,
            "premium": Decimal("1.00"),
            "organization_id": "org-1",
        }

        result = await service.ensure_for_quote("quote-1")

        assert result.err_value == (
            "Missing client ID or organization ID for payment transaction"
        )

    async def test_missing_quote(self, service):
        result = await service.ensure_for_quote("quote-404")

        assert result.err_value == "Quote quote-404 not found"


class TestPaymentUpdates:
    async def test_create_for_quote_inserts_pending_with_workflow_origin(
        self, service, mock_db, payment_row
    ):
        mock_db.fetchrow.return_value = payment_row(
            id="txn-9", amount=Decimal("10.50"), metadata={"workflow_created": True}
        )

        result = await service.create_for_quote(
            "quote-1", "client-1", "org-1", Decimal("10.50")
        )

        transaction = result.ok_value
        assert transaction.id == "txn-9"
        assert transaction.amount == Decimal("10.50")
        assert transaction.metadata == {"workflow_created": True}
        assert transaction.paid_at is None
        query, *args = mock_db.fetchrow.await_args.args
        assert "INSERT INTO payment_transactions" in query
        assert args == [
            "quote-1",
            "client-1",
            "org-1",
            Decimal("10.50"),
            "NGN",
            "bank_transfer",
            "pending",
            {"created_by": "workflow", "workflow_created": True},
        ]

    async def test_create_for_quote_failure(self, service, mock_db):
        mock_db.fetchrow.side_effect = RuntimeError("foreign key violation")

        result = await service.create_for_quote(
            "quote-1", "client-1", "org-1", Decimal("1")
        )

        assert result.err_value == (
            "Failed to create payment transaction: foreign key violation"
        )

    async def test_completing_stamps_paid_at_and_merges_metadata(
        self, service, mock_db, payment_row
    ):
        paid_at = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)
        mock_db.fetchrow.return_value = payment_row(
            id="txn-1",
            status="completed",
            paid_at=paid_at,
            metadata={"provider_reference": "PSK-123"},
        )

        result = await service.update_status(
            "txn-1", PaymentStatus.COMPLETED, {"provider_reference": "PSK-123"}
        )

        transaction = result.ok_value
        assert transaction.status == PaymentStatus.COMPLETED
        assert transaction.paid_at == paid_at
        assert transaction.metadata == {"provider_reference": "PSK-123"}
        query, *args = mock_db.fetchrow.await_args.args
        assert "metadata = COALESCE($3, metadata)" in query
        assert "WHEN $2 = 'completed' THEN NOW()" in query
        assert args == ["txn-1", "completed", {"provider_reference": "PSK-123"}]

    async def test_status_change_without_metadata_keeps_stored_metadata(
        self, service, mock_db, payment_row
    ):
        mock_db.fetchrow.return_value = payment_row(
            status="failed", metadata={"attempt": 1}
        )

        result = await service.update_status("txn-1", PaymentStatus.FAILED)

        assert result.ok_value.metadata == {"attempt": 1}
        assert result.ok_value.paid_at is None
        assert mock_db.fetchrow.await_args.args[1:] == ("txn-1", "failed", None)

    async def test_update_unknown_transaction(self, service):
        result = await service.update_status("txn-404", PaymentStatus.FAILED)

        assert result.err_value == "Payment transaction txn-404 not found"

    async def test_update_failure(self, service, mock_db):
        mock_db.fetchrow.side_effect = ConnectionError("db down")

        result = await service.update_status("txn-1", PaymentStatus.PENDING)

        assert result.err_value == "Failed to update payment transaction: db down"

    async def test_get_by_quote_id_none(self, service):
        assert (await service.get_by_quote_id("quote-1")).ok_value is None
