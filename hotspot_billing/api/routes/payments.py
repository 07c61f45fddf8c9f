"""Payment routes: STK push initiation and the Daraja result callback."""

import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from hotspot_billing.api.deps import DB, PaymentGateway, RouterExecutor, RouterManager
from hotspot_billing.schemas.payments import PayRequest
from hotspot_billing.services.payment_service import payment_service
from hotspot_billing.services.reconciliation_service import reconciliation_service
from hotspot_billing.utils.envelopes import api_error, api_success
from hotspot_billing.utils.exceptions import InvalidCallbackError, PaymentGatewayError, ValidationException

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


@router.post("/pay")
async def pay(payload: PayRequest, db: DB, gateway: PaymentGateway):
	"""Start an M-Pesa STK push for a plan."""
	try:
		checkout_id = await payment_service.initiate(db, gateway, payload.phone, payload.plan_id)
	except ValidationException as e:
		return JSONResponse(status_code=e.status_code, content=api_error(e.message))
	except PaymentGatewayError as e:
		logger.error("pay error: %s (%s)", e.message, e.details)
		return JSONResponse(status_code=500, content=api_error("Payment initiation failed"))
	except Exception:
		logger.exception("pay error")
		return JSONResponse(status_code=500, content=api_error("Payment initiation failed"))

	return api_success(checkoutId=checkout_id)


@router.post("/callback")
async def mpesa_callback(request: Request, db: DB, manager: RouterManager, executor: RouterExecutor):
	"""Daraja STK push result webhook.

	Unknown or repeated CheckoutRequestIDs still get a 200 so Daraja stops retrying.
	"""
	try:
		payload = await request.json()
	except (json.JSONDecodeError, UnicodeDecodeError):
		return PlainTextResponse("Invalid callback", status_code=400)

	logger.info("M-Pesa callback: %s", json.dumps(payload, default=str))

	try:
		result = await reconciliation_service.handle_callback(db, payload, manager, executor)
	except InvalidCallbackError:
		return PlainTextResponse("Invalid callback", status_code=400)
	except Exception as e:
		logger.exception(f"callback handler error: {e}")
		return PlainTextResponse("Server error", status_code=500)

	return {"message": result.message}
