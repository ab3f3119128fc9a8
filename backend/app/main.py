"""FastAPI application entrypoint.

Configures Sentry, session and CORS middleware, includes routers, and
exposes a healthcheck endpoint.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware
import logging
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from .deps import get_settings
from .routers import petitions as petitions_router
from .routers import signatures as signatures_router
from .telemetry.sentry import init_sentry
from . import schemas

# Import models so Alembic can discover metadata
from . import models  # noqa: F401


def create_app() -> FastAPI:
    init_sentry()

    app = FastAPI(
        title="Petition Signatures API",
        description="""
        Signature intake for petitions.

        This API provides endpoints for:
        - Signing a petition, with referral attribution for emailed links,
          Facebook likes/popups/posted actions, forwarded confirmations and tweets
        - Reading a petition summary after signing

        ## Identity

        Signing sets a `member_id` cookie holding an opaque member token, so a
        returning signer can be recognised without typing their email again.
        """,
        version="1.0.0",
    )

    # Trust X-Forwarded-* from the load balancer so request.client.host is the signer's IP
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

    settings = get_settings()

    if settings.SESSION_SECRET_KEY == "session-secret-change-this-in-production":
        logger.warning("Using default session secret key. Set SESSION_SECRET_KEY for production.")

    # Session carries one-time notices (e.g. email delivery failures) across the redirect
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET_KEY
    )

    # BACKEND_CORS_ORIGINS can be a comma-separated list
    allowed_origins = [origin.strip() for origin in settings.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]
    logger.info(f"[CORS] Allowed origins: {allowed_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(petitions_router.router)
    app.include_router(signatures_router.router)

    @app.get(
        "/health",
        response_model=schemas.HealthResponse,
        tags=["Health"],
        summary="Health check",
        description="Returns ok when the API is responsive. No authentication required."
    )
    def health():
        return schemas.HealthResponse(status="ok")

    return app


app = create_app()
