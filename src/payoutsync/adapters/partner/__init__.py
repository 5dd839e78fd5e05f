"""Public interface for the partner platform adapter."""

from __future__ import annotations

from .client import OpenApiClient, PartnerAPIError, PartnerCenterClient, sign_request
from .strategies import (
    STATEMENT_TYPES,
    CenterPayoutSearchStrategy,
    DashboardScrapeStrategy,
    OpenApiOverviewStrategy,
    OpenApiPaymentsStrategy,
    OpenApiSettlementsStrategy,
    OpenApiStatementsByTypeStrategy,
    OpenApiStatementsQueryStrategy,
    OpenApiStatementsStrategy,
)

__all__ = [
    "STATEMENT_TYPES",
    "CenterPayoutSearchStrategy",
    "DashboardScrapeStrategy",
    "OpenApiClient",
    "OpenApiOverviewStrategy",
    "OpenApiPaymentsStrategy",
    "OpenApiSettlementsStrategy",
    "OpenApiStatementsByTypeStrategy",
    "OpenApiStatementsQueryStrategy",
    "OpenApiStatementsStrategy",
    "PartnerAPIError",
    "PartnerCenterClient",
    "sign_request",
]
