# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Core infrastructure: configuration, persistence, caching and tokens."""

from .cache import Cache, get_cache
from .config import Settings, get_settings
from .database import Database, get_database
from .result_types import Err, Ok, Result

__all__ = [
    "Cache",
    "Database",
    "Err",
    "Ok",
    "Result",
    "Settings",
    "get_cache",
    "get_database",
    "get_settings",
]
