import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from hotspot_billing.api.deps import DB
from hotspot_billing.database.user_repo import user_repository
from hotspot_billing.schemas.users import UserStatusResponse
from hotspot_billing.utils.clock import ensure_aware, utc_now

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


@router.get("/validate-user/{phone}")
async def validate_user(phone: str, db: DB):
	"""Whether a phone number currently has paid access."""
	try:
		user = await user_repository.get_by_phone(db, phone)
	except Exception as e:
		logger.error(f"validate-user error: {e}")
		return JSONResponse(status_code=500, content={"phone": phone, "active": False})

	if user is None:
		return UserStatusResponse(phone=phone, active=False, active_until=None).model_dump(mode="json")

	active_until = ensure_aware(user.active_until)
	is_active = active_until is not None and active_until > utc_now()
	return UserStatusResponse(phone=phone, active=is_active, active_until=active_until).model_dump(mode="json")
