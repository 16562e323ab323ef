"""
PhishNet - FastAPI Application

Main entry point for the PhishNet case engine backend.

Architecture:
- Victim files report → Intake → Pending report (+ auto-escalation notices)
- Admin review → LifecycleEngine → Validated / Rejected (+ recycle bin)
- Recycle bin → restore → live row back under its original ID
- Threat level / account status changes → append-only audit logs
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import auth_router, incidents_router, review_router, admin_router
from .database import build_engine, build_session_factory, init_db

logger = logging.getLogger(__name__)


def create_app(database_url: Optional[str] = None, **engine_options) -> FastAPI:
    """
    Build the application. The engine and its pool live for the lifetime of
    the app and are disposed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create the connection pool and tables on startup."""
        engine = build_engine(database_url, **engine_options)
        init_db(engine)
        app.state.engine = engine
        app.state.session_factory = build_session_factory(engine)
        logger.info(f"Database ready ({engine.url.render_as_string(hide_password=True)})")
        yield
        engine.dispose()

    app = FastAPI(
        lifespan=lifespan,
        title="PhishNet",
        description="""
        PhishNet - Cybersecurity Incident Case Management

        Victims report phishing, scam and fraud incidents against a
        perpetrator identifier. Administrators review reports and evidence,
        and rejected items go to a recycle bin from which they can be restored.

        ## Automatic escalation
        - 3+ distinct victims against one perpetrator within 7 days marks it Malicious
        - More than 5 reports from one victim in a calendar month flags the account

        Every threat-level and account-status change is written to an
        append-only audit log.
        """,
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(auth_router)
    app.include_router(incidents_router)
    app.include_router(review_router)
    app.include_router(admin_router)

    @app.get("/")
    async def root():
        """Root endpoint - API information."""
        return {
            "name": "PhishNet",
            "version": "1.0.0",
            "description": "Cybersecurity Incident Case Management",
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": "1.0.0"}

    return app


app = create_app()


# For running with: python -m phishnet.main
if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host="0.0.0.0", port=8001)
