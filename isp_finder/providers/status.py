"""
Placeholder ISP status integration.

Production deployments would read ISP-hosted status pages or incident feeds.
Until then the status of each covering ISP is derived from its coverage in
the city, shaped like a real status API response.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from isp_finder.config import settings
from isp_finder.models import ISP, Incident, IncidentSeverity, IspStatus, ServiceStatus
from isp_finder.utils.cancellation import CancellationToken, check_cancelled

logger = logging.getLogger(__name__)

DEGRADED_BELOW = 60
OUTAGE_BELOW = 40


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def derive_status(isp: ISP, coverage_percentage: float, now: datetime) -> IspStatus:
    """Synthetic status for one ISP; lower coverage reports more trouble."""
    if coverage_percentage < OUTAGE_BELOW:
        return IspStatus(
            isp_id=isp.id,
            isp_name=isp.name,
            status=ServiceStatus.OUTAGE,
            message="Partial outage reported. Technicians are investigating.",
            last_updated=now,
            incidents=[
                Incident(
                    id=f"{isp.id}-outage",
                    title="Regional connectivity issue",
                    severity=IncidentSeverity.HIGH,
                    started_at=now - timedelta(minutes=30),
                )
            ],
        )

    if coverage_percentage < DEGRADED_BELOW:
        return IspStatus(
            isp_id=isp.id,
            isp_name=isp.name,
            status=ServiceStatus.DEGRADED,
            message="Service may be limited in some neighborhoods.",
            last_updated=now,
            incidents=[
                Incident(
                    id=f"{isp.id}-maint",
                    title="Planned maintenance",
                    severity=IncidentSeverity.MEDIUM,
                    started_at=now - timedelta(hours=1),
                )
            ],
        )

    return IspStatus(
        isp_id=isp.id,
        isp_name=isp.name,
        status=ServiceStatus.OPERATIONAL,
        message="All systems operational",
        last_updated=now,
    )


async def fetch_isp_status_for_city(
    city_id: str,
    isps: Sequence[ISP],
    token: Optional[CancellationToken] = None,
    delay: Optional[float] = None,
    clock: Callable[[], datetime] = _utcnow,
) -> List[IspStatus]:
    """
    Status of every ISP with coverage in the city, in catalog order.

    Args:
        city_id: Target city
        isps: Catalog ISPs
        token: Optional cancellation token
        delay: Simulated provider latency in seconds (defaults to STATUS_SIMULATED_DELAY_SEC)
        clock: Source of the current time

    Raises:
        OperationCancelled: If the token is cancelled while waiting
    """
    delay = settings.STATUS_SIMULATED_DELAY_SEC if delay is None else delay
    if delay > 0:
        await asyncio.sleep(delay)
    check_cancelled(token)

    now = clock()
    statuses = []
    for isp in isps:
        coverage = isp.coverage_for(city_id)
        if coverage is None:
            continue
        statuses.append(derive_status(isp, coverage.coverage_percentage, now))

    logger.info("Status for %s: %d ISPs, %d not operational", city_id, len(statuses),
                sum(1 for s in statuses if s.status != ServiceStatus.OPERATIONAL))
    return statuses
