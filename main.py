import sys
import os
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from modules.shared.config import Settings, configure_logging
from modules.services import Services
from modules.reports.router import router as reports_router
from modules.identity.router import router as identity_router
from modules.drafts.router import router as drafts_router
from modules.notifications.router import router as notifications_router
from modules.shared.response import success_response

logger = logging.getLogger("main")


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="Anonymous Abuse Report API")
    app.state.settings = settings
    app.state.services = services

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(reports_router, prefix="/api/reports")
    app.include_router(identity_router, prefix="/api/identity")
    app.include_router(drafts_router, prefix="/api/drafts")
    app.include_router(notifications_router, prefix="/api/notifications")

    @app.get("/health")
    async def health():
        state = app.state.services.reports.state
        return success_response({"reports": len(state.reports), "error": state.error}, "OK")

    @app.on_event("startup")
    async def startup_event():
        """Connect the stores and open the live report feed on startup"""
        if app.state.services is None:
            app.state.services = await Services.open(settings)
        await app.state.services.start()
        logger.info("Report service started")

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.services is not None:
            await app.state.services.close()
        logger.info("Report service stopped")

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
