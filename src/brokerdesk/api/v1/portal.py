# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Portal endpoints.

Client-facing routes are authenticated by the portal token in the path,
not by an internal user's bearer token.
"""

from datetime import datetime
from typing import Any

from beartype import beartype
from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field

from ...models.base import BaseModelConfig
from ...models.portal import PortalLink, PortalLinkIssued, PortalLinkKind
from ...models.role import CurrentUser, PermissionAction, PermissionModule
from ...services.portal_links import PortalLinkService
from ..dependencies import get_portal_link_service, require_permission

router = APIRouter(tags=["portal"])


class PortalView(BaseModelConfig):
    """What an external client sees when opening a portal link."""

    kind: PortalLinkKind
    quote_id: str | None = None
    claim_id: str | None = None
    expires_at: datetime
    offers: list[dict[str, Any]] = Field(default_factory=list)
    claim_data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_link(cls, link: PortalLink) -> "PortalView":
        return cls(
            kind=link.kind,
            quote_id=link.quote_id,
            claim_id=link.claim_id,
            expires_at=link.expires_at,
            offers=link.evaluated_quotes_data,
            claim_data=link.claim_data,
        )


class SelectQuoteRequest(BaseModelConfig):
    evaluated_quote_id: str = Field(..., min_length=1)


class ClaimPortalLinkRequest(BaseModelConfig):
    client_id: str = Field(..., min_length=1)
    claim_data: dict[str, Any] = Field(default_factory=dict)
    expiry_hours: int | None = Field(default=None, ge=1, le=24 * 30)


@router.get("/portal/{token}", response_model=PortalView)
@beartype
async def view_portal(
    token: str,
    portal_links: PortalLinkService = Depends(get_portal_link_service),
) -> PortalView:
    """Open a portal link."""
    result = await portal_links.verify_token(token)
    if result.is_err():
        raise HTTPException(status_code=401, detail=result.err_value)
    return PortalView.from_link(result.ok_value)


@router.post("/portal/{token}/select", response_model=PortalView)
@beartype
async def select_quote(
    token: str,
    request: SelectQuoteRequest,
    portal_links: PortalLinkService = Depends(get_portal_link_service),
) -> PortalView:
    """Record which insurer offer the client accepts. Consumes the link."""
    verified = await portal_links.verify_token(token)
    if verified.is_err():
        raise HTTPException(status_code=401, detail=verified.err_value)

    result = await portal_links.select_quote(token, request.evaluated_quote_id)
    if result.is_err():
        raise HTTPException(status_code=400, detail=result.err_value)
    return PortalView.from_link(result.ok_value)


@router.post("/claims/{claim_id}/portal-link", response_model=PortalLinkIssued)
@beartype
async def issue_claim_portal_link(
    claim_id: str,
    request: ClaimPortalLinkRequest,
    portal_links: PortalLinkService = Depends(get_portal_link_service),
    user: CurrentUser = Depends(
        require_permission(PermissionModule.CLAIMS, PermissionAction.CREATE)
    ),
) -> PortalLinkIssued:
    """Issue a claim registration link and email it to the client."""
    if not user.organization_id:
        raise HTTPException(status_code=400, detail="User has no organization")

    result = await portal_links.generate_claim_portal_link(
        claim_id,
        request.client_id,
        user.organization_id,
        claim_data=request.claim_data,
        expiry_hours=request.expiry_hours,
    )
    if result.is_err():
        raise HTTPException(status_code=400, detail=result.err_value)
    return result.ok_value
