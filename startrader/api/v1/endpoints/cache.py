from fastapi import APIRouter, Depends

from startrader.core.dependencies import SweeperDependency, verify_cron_secret
from startrader.core.responses import send_success
from startrader.schemas.cache import SweepSummary
from startrader.utils.logging import get_logger

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/sweep", dependencies=[Depends(verify_cron_secret)])
async def sweep_cache(sweeper: SweeperDependency):
    logger = get_logger()
    logger.info("Cleanup function triggered")
    report = await sweeper.sweep()
    return send_success(
        message="Cleanup complete",
        data=SweepSummary(
            scanned=report.scanned,
            deleted_keys=report.deleted,
            failed_keys=report.failed,
        ),
    )
