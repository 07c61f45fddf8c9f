import logging

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from hotspot_billing.api.deps import DB
from hotspot_billing.database.plan_repo import plan_repository
from hotspot_billing.schemas.plans import PlanResponse
from hotspot_billing.utils.durations import describe_duration

logger = logging.getLogger(__name__)

router = APIRouter(tags=["plans"])


@router.get("/plans")
async def list_plans(db: DB):
	"""Active plans, cheapest first."""
	try:
		plans = await plan_repository.list_active_plans(db)
	except Exception as e:
		logger.error(f"Error fetching plans: {e}")
		return PlainTextResponse("Server error", status_code=500)

	return [
		PlanResponse(
			id=p.id,
			price=p.price,
			duration=describe_duration(p.duration),
			profile_name=p.profile_name,
			rate_limit=p.rate_limit,
			active=p.active,
		).model_dump()
		for p in plans
	]
