from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
import logging
import time
from pathlib import Path
from typing import Optional

from opentelemetry.trace import get_current_span

from hotspot_billing.core.config import settings
from hotspot_billing.api.routes.health import router as health_router
from hotspot_billing.api.routes.payments import router as payments_router
from hotspot_billing.api.routes.plans import router as plans_router
from hotspot_billing.api.routes.users import router as users_router
from hotspot_billing.core.db import dispose_engine, get_sessionmaker, init_engine_and_session
from hotspot_billing.integrations.routeros_executor import RouterOSCommandExecutor
from hotspot_billing.integrations.routeros_session import RouterOSSessionManager
from hotspot_billing.services.scheduler import BackgroundScheduler
from hotspot_billing.utils.envelopes import api_error
from hotspot_billing.utils.exceptions import AppException


logging.basicConfig(
	level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title=settings.APP_NAME)

_logger = logging.getLogger("hotspot_billing.api")

# The captive portal page is served from another origin on some setups
app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

# Normalize API prefix (must not end with '/')
_api_prefix = settings.API_PREFIX.rstrip("/")

app.include_router(health_router, prefix=_api_prefix)
app.include_router(plans_router, prefix=_api_prefix)
app.include_router(payments_router, prefix=_api_prefix)
app.include_router(users_router, prefix=_api_prefix)


def _trace_id() -> Optional[str]:
	_current_span = get_current_span()
	trace_id_int = _current_span.get_span_context().trace_id if _current_span else 0
	return f"{trace_id_int:032x}" if trace_id_int else None


# Structured request logging (includes trace correlation where available)
@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
	start_time = time.perf_counter()
	client_ip: Optional[str] = request.headers.get("x-forwarded-for") or (request.client.host if request.client else None)
	user_agent: Optional[str] = request.headers.get("user-agent")
	status_code: Optional[int] = None
	try:
		response = await call_next(request)
		status_code = response.status_code
		return response
	except Exception:
		_logger.exception(
			"Unhandled exception during request",
			extra={
				"http.method": request.method,
				"http.route": request.url.path,
				"net.peer.ip": client_ip,
				"http.user_agent": user_agent,
				"trace_id": _trace_id(),
			},
		)
		raise
	finally:
		elapsed_ms = (time.perf_counter() - start_time) * 1000.0
		_logger.info(
			"HTTP request",
			extra={
				"http.method": request.method,
				"http.route": request.url.path,
				"http.status_code": status_code,
				"http.duration_ms": round(elapsed_ms, 2),
				"net.peer.ip": client_ip,
				"http.user_agent": user_agent,
				"trace_id": _trace_id(),
			},
		)


@app.on_event("startup")
async def on_startup() -> None:
	init_engine_and_session()
	manager = RouterOSSessionManager()
	executor = RouterOSCommandExecutor(manager)
	app.state.routeros_manager = manager
	app.state.routeros_executor = executor
	if settings.SCHEDULER_ENABLED:
		scheduler = BackgroundScheduler(manager, executor, get_sessionmaker())
		scheduler.start()
		app.state.scheduler = scheduler


@app.on_event("shutdown")
async def on_shutdown() -> None:
	scheduler = getattr(app.state, "scheduler", None)
	if scheduler is not None:
		await scheduler.stop()
	manager = getattr(app.state, "routeros_manager", None)
	if manager is not None:
		await manager.close()
	await dispose_engine()


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
	return JSONResponse(status_code=exc.status_code, content=api_error(exc.message))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
	return JSONResponse(status_code=400, content=api_error("Invalid request"))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
	_logger.exception(
		"Unhandled exception",
		extra={
			"http.method": request.method,
			"http.route": request.url.path,
			"trace_id": _trace_id(),
		},
	)
	return JSONResponse(status_code=500, content=api_error("Server error"))


# Mounted last so the API routes take precedence over "/"
if Path(settings.STATIC_DIR).is_dir():
	app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="portal")
