# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Client and claim portal links.

A portal link gives an external client access to one quote or claim
without an internal account. The link token is a signed JWT carrying the
link id and an expiry; the stored row is the authority on whether the
link has been used.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from beartype import beartype

from ..core.config import Settings, get_settings
from ..core.database import Database
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..core.security import TokenSigner, get_token_signer
from ..models.portal import PortalLink, PortalLinkIssued, PortalLinkKind
from .notifications import NotificationService, NotificationType
from .performance_monitor import performance_monitor

logger = get_logger(__name__)

_TABLES = {
    PortalLinkKind.QUOTE: "client_portal_links",
    PortalLinkKind.CLAIM: "claim_portal_links",
}


class PortalLinkService:
    """Issue, look up and verify portal links."""

    def __init__(
        self,
        db: Database,
        settings: Settings | None = None,
        signer: TokenSigner | None = None,
        notifications: NotificationService | None = None,
    ) -> None:
        """Initialize service with dependency validation."""
        if not db or not hasattr(db, "execute"):
            raise ValueError("Database connection required and must be active")

        self._db = db
        self._settings = settings or get_settings()
        self._signer = signer or get_token_signer()
        self._notifications = notifications

    @performance_monitor("ensure_client_portal_link", max_duration_ms=1000)
    @beartype
    async def ensure_client_portal_link(
        self, quote_id: str, organization_id: str | None = None
    ) -> Result[PortalLink, str]:
        """Return the quote's live portal link, creating it if needed.

        A new link stores a snapshot of the evaluated quotes that received
        an insurer response, so the client sees the offers as they stood
        when the link was issued. With ``organization_id``, quotes of other
        organizations are not found.
        """
        existing = await self.get_by_quote_id(quote_id)
        if existing.is_err():
            return Err(existing.err_value)
        if existing.ok_value is not None:
            if not _same_organization(
                existing.ok_value.organization_id, organization_id
            ):
                return Err(f"Quote {quote_id} not found")
            return Ok(existing.ok_value)

        try:
            quote = await self._db.fetchrow(
                """
                SELECT id, organization_id, client_id, quote_number
                FROM quotes WHERE id = $1
                """,
                quote_id,
            )
        except Exception as e:
            return Err(f"Failed to load quote for portal link: {str(e)}")

        if not quote or not _same_organization(
            str(quote["organization_id"]), organization_id
        ):
            return Err(f"Quote {quote_id} not found")
        if not quote["client_id"]:
            return Err(f"Quote {quote_id} has no client; cannot issue portal link")

        evaluated = await self._fetch_evaluated_quotes(quote_id)
        if evaluated.is_err():
            return Err(evaluated.err_value)

        expires_at = self._expiry(self._settings.portal_link_expiry_hours)
        link_id, token = self._signer.sign_portal_token(
            kind=PortalLinkKind.QUOTE.value,
            subject_id=quote_id,
            client_id=str(quote["client_id"]),
            organization_id=str(quote["organization_id"]),
            expires_at=expires_at,
        )

        try:
            row = await self._db.fetchrow(
                """
                INSERT INTO client_portal_links (
                    id, organization_id, quote_id, client_id, token,
                    expires_at, is_used, evaluated_quotes_data
                ) VALUES ($1, $2, $3, $4, $5, $6, FALSE, $7)
                RETURNING *
                """,
                link_id,
                quote["organization_id"],
                quote_id,
                quote["client_id"],
                token,
                expires_at,
                evaluated.ok_value,
            )
        except Exception as e:
            return Err(f"Failed to create client portal link: {str(e)}")

        if not row:
            return Err("Client portal link insert returned no row")

        logger.info("Created client portal link %s for quote %s", link_id, quote_id)
        return Ok(PortalLink.from_record(dict(row), PortalLinkKind.QUOTE))

    @beartype
    async def generate_claim_portal_link(
        self,
        claim_id: str,
        client_id: str,
        organization_id: str,
        claim_data: dict[str, Any] | None = None,
        expiry_hours: int | None = None,
    ) -> Result[PortalLinkIssued, str]:
        """Issue a claim registration link and email it to the client."""
        hours = (
            expiry_hours
            if expiry_hours is not None
            else self._settings.portal_link_expiry_hours
        )
        if hours < 1:
            return Err("Portal link expiry must be at least one hour")

        expires_at = self._expiry(hours)
        link_id, token = self._signer.sign_portal_token(
            kind=PortalLinkKind.CLAIM.value,
            subject_id=claim_id,
            client_id=client_id,
            organization_id=organization_id,
            expires_at=expires_at,
        )

        try:
            await self._db.execute(
                """
                INSERT INTO claim_portal_links (
                    id, organization_id, claim_id, client_id, token,
                    expires_at, is_used, claim_data
                ) VALUES ($1, $2, $3, $4, $5, $6, FALSE, $7)
                """,
                link_id,
                organization_id,
                claim_id,
                client_id,
                token,
                expires_at,
                claim_data or {},
            )
        except Exception as e:
            return Err(f"Failed to create claim portal link: {str(e)}")

        issued = PortalLinkIssued(
            portal_link_id=link_id,
            portal_url=self.claim_portal_url(token),
            expires_at=expires_at,
        )
        logger.info("Created claim portal link %s for claim %s", link_id, claim_id)

        if self._notifications is not None:
            await self._notify_claim_link(
                self._notifications, client_id, claim_id, issued
            )

        return Ok(issued)

    @beartype
    async def get_by_quote_id(self, quote_id: str) -> Result[PortalLink | None, str]:
        """Live (unused and unexpired) client portal link of a quote."""
        return await self._get_live_link(PortalLinkKind.QUOTE, "quote_id", quote_id)

    @beartype
    async def get_by_claim_id(self, claim_id: str) -> Result[PortalLink | None, str]:
        """Live (unused and unexpired) portal link of a claim."""
        return await self._get_live_link(PortalLinkKind.CLAIM, "claim_id", claim_id)

    @beartype
    async def mark_as_used(
        self, link_id: str, kind: PortalLinkKind = PortalLinkKind.QUOTE
    ) -> Result[bool, str]:
        try:
            status = await self._db.execute(
                f"UPDATE {_TABLES[kind]} SET is_used = TRUE WHERE id = $1",
                link_id,
            )
        except Exception as e:
            return Err(f"Failed to mark portal link as used: {str(e)}")

        updated = status.endswith(" 1")
        if updated:
            logger.info("Portal link %s marked as used", link_id)
        return Ok(updated)

    @beartype
    async def verify_token(self, token: str) -> Result[PortalLink, str]:
        """Check signature, expiry and the stored link row."""
        claims = self._signer.decode_portal_token(token)
        if claims.is_err():
            return Err(claims.err_value)

        try:
            kind = PortalLinkKind(claims.ok_value.kind)
        except ValueError:
            return Err(f"Unknown portal link kind: {claims.ok_value.kind}")

        try:
            row = await self._db.fetchrow(
                f"SELECT * FROM {_TABLES[kind]} WHERE id = $1 AND token = $2",
                claims.ok_value.link_id,
                token,
            )
        except Exception as e:
            return Err(f"Failed to load portal link: {str(e)}")

        if not row:
            return Err("Portal link not found")

        link = PortalLink.from_record(dict(row), kind)
        if link.is_used:
            return Err("Portal link has already been used")
        if link.is_expired():
            return Err("Portal link has expired")
        return Ok(link)

    @beartype
    async def select_quote(
        self, token: str, evaluated_quote_id: str
    ) -> Result[PortalLink, str]:
        """Record the client's choice among the offers shown by a quote link.

        The chosen evaluated quote becomes ``selected``, the rest of the
        link's offers ``declined``, and the link is consumed.
        """
        verified = await self.verify_token(token)
        if verified.is_err():
            return Err(verified.err_value)

        link = verified.ok_value
        if link.kind is not PortalLinkKind.QUOTE or link.quote_id is None:
            return Err("Only quote portal links can select an offer")

        offered = {str(offer.get("id")) for offer in link.evaluated_quotes_data}
        if evaluated_quote_id not in offered:
            return Err(f"Offer {evaluated_quote_id} is not part of this portal link")

        try:
            async with self._db.transaction() as conn:
                await conn.execute(
                    """
                    UPDATE evaluated_quotes
                    SET status = CASE WHEN id = $2 THEN 'selected' ELSE 'declined' END,
                        updated_at = NOW()
                    WHERE quote_id = $1 AND id = ANY($3::uuid[])
                    """,
                    link.quote_id,
                    evaluated_quote_id,
                    sorted(offered),
                )
                await conn.execute(
                    "UPDATE client_portal_links SET is_used = TRUE WHERE id = $1",
                    link.id,
                )
        except Exception as e:
            return Err(f"Failed to record quote selection: {str(e)}")

        logger.info(
            "Client selected offer %s for quote %s", evaluated_quote_id, link.quote_id
        )
        return Ok(link.model_copy(update={"is_used": True}))

    @beartype
    def client_portal_url(self, token: str) -> str:
        return f"{self._settings.portal_base_url}/client-portal?token={token}"

    @beartype
    def claim_portal_url(self, token: str) -> str:
        return f"{self._settings.portal_base_url}/claim-portal?token={token}"

    @beartype
    def payment_url(self, token: str) -> str:
        return f"{self._settings.portal_base_url}/payment?token={token}"

    async def _get_live_link(
        self, kind: PortalLinkKind, column: str, value: str
    ) -> Result[PortalLink | None, str]:
        try:
            row = await self._db.fetchrow(
                f"""
                SELECT * FROM {_TABLES[kind]}
                WHERE {column} = $1 AND is_used = FALSE AND expires_at > NOW()
                ORDER BY created_at DESC
                LIMIT 1
                """,
                value,
            )
        except Exception as e:
            return Err(f"Failed to fetch portal link: {str(e)}")

        return Ok(PortalLink.from_record(dict(row), kind) if row else None)

    async def _fetch_evaluated_quotes(
        self, quote_id: str
    ) -> Result[list[dict[str, Any]], str]:
        try:
            rows = await self._db.fetch(
                """
                SELECT id, insurer_id, insurer_name, premium_quoted,
                       commission_split, terms_conditions, exclusions,
                       coverage_limits, rating_score, remarks, document_url
                FROM evaluated_quotes
                WHERE quote_id = $1 AND response_received = TRUE
                ORDER BY rating_score DESC NULLS LAST
                """,
                quote_id,
            )
        except Exception as e:
            return Err(f"Failed to fetch evaluated quotes: {str(e)}")

        return Ok([_jsonable(dict(row)) for row in rows])

    async def _notify_claim_link(
        self,
        notifications: NotificationService,
        client_id: str,
        claim_id: str,
        issued: PortalLinkIssued,
    ) -> None:
        try:
            client = await self._db.fetchrow(
                "SELECT name, email FROM clients WHERE id = $1", client_id
            )
        except Exception as e:
            logger.warning("Could not load client %s for claim link: %s", client_id, e)
            return

        result = await notifications.send(
            NotificationType.CLAIM_PORTAL_LINK,
            {
                "client_name": client["name"] if client else "Client",
                "client_email": client["email"] if client else None,
                "portal_url": issued.portal_url,
                "expires_at": issued.expires_at.strftime("%Y-%m-%d %H:%M UTC"),
                "claim_id": claim_id,
            },
        )
        if result.is_err():
            logger.warning(
                "Claim portal link %s issued but not emailed: %s",
                issued.portal_link_id,
                result.err_value,
            )

    @staticmethod
    def _expiry(hours: int) -> datetime:
        return datetime.now(timezone.utc) + timedelta(hours=hours)


def _same_organization(owner: str, organization_id: str | None) -> bool:
    return organization_id is None or owner == organization_id


def _jsonable(row: dict[str, Any]) -> dict[str, Any]:
    """Stringify ids and decimals so the row can be stored as JSON."""
    return {
        key: (
            value
            if value is None or isinstance(value, (bool, int, float, str, list, dict))
            else str(value)
        )
        for key, value in row.items()
    }
