import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fee_ledger.api.v1.catalog.router import router as fee_catalog_router
from fee_ledger.api.v1.fees.router import router as fees_router
from fee_ledger.core.config import settings


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Student Fee Ledger")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(fee_catalog_router)
    app.include_router(fees_router)

    return app


app = create_app()
