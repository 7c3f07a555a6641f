# src/careops/app.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi import HTTPException as FastAPIHTTPException
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.careops.config import settings
from src.careops.exceptions import CareOpsError
from src.careops.routes.auth_api import auth_api
from src.careops.routes.profile_security_api import router as profile_security_router
from src.careops.utils.context import AppContext, build_context
from src.careops.utils.error_handler import custom_exception_handler
from src.careops.utils.logger import setup_logging
from src.careops.utils.session_manager import SessionState

logger = logging.getLogger(__name__)


def create_app(ctx: Optional[AppContext] = None) -> FastAPI:
    setup_logging(settings.LOG_LEVEL)
    context = ctx or build_context(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Self-heal the activity log once per start
        context.activity_log.clean()
        yield
        # Heartbeat is tied to the login; never leave it running past shutdown
        context.shutdown()

    app = FastAPI(title=context.settings.APP_NAME, version="1.0", lifespan=lifespan)
    app.state.ctx = context

    # ----------------------------------------------------------
    # CUSTOM ERROR HANDLERS
    # ----------------------------------------------------------
    app.add_exception_handler(StarletteHTTPException, custom_exception_handler)
    app.add_exception_handler(FastAPIHTTPException, custom_exception_handler)
    app.add_exception_handler(RequestValidationError, custom_exception_handler)
    app.add_exception_handler(CareOpsError, custom_exception_handler)
    app.add_exception_handler(Exception, custom_exception_handler)

    # ----------------------------------------------------------
    # ROUTERS
    # ----------------------------------------------------------
    app.include_router(auth_api, prefix="/auth", tags=["Auth"])
    app.include_router(profile_security_router)

    @app.get("/health", include_in_schema=False)
    async def health():
        return {"status": "ok", "session_active": context.sessions.state is SessionState.ACTIVE}

    return app
