# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""API v1 router aggregation."""

from fastapi import APIRouter

from .admin import router as admin_router
from .health import router as health_router
from .portal import router as portal_router
from .workflow import router as workflow_router

router = APIRouter(prefix="/api/v1")

router.include_router(health_router, tags=["health"])
router.include_router(workflow_router)
router.include_router(portal_router)
router.include_router(admin_router)


__all__ = ["router"]
