from fastapi import APIRouter, Depends, Request

from portal.auth.dependencies import get_harvest_client, harvest_call, require_admin
from portal.harvest.client import HarvestClient
from portal.routes.common import query_dict
from portal.schemas import TimeReportQuery
from portal.validation import validate_request

router = APIRouter(prefix="/api/harvest/reports", tags=["reports"])


@router.get("/time", dependencies=[Depends(require_admin)])
async def time_report(request: Request, client: HarvestClient = Depends(get_harvest_client)):
    """Hours per client for a date range; from and to are required."""
    query = validate_request(TimeReportQuery, query_dict(request))
    async with harvest_call("Failed to fetch time report"):
        return await client.get_time_report(query.to_params())
