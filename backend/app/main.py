from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.core.logging import setup_logging
import app.models  # noqa: F401  # force model registration

from app.api.v1.auth import router as auth_router
from app.api.v1.mlm import router as mlm_router
from app.api.v1.catalog import router as catalog_router
from app.api.v1.orders import router as orders_router
from app.api.v1.ledger import router as ledger_router
from app.api.v1.invites import router as invites_router
from app.api.v1.points import router as points_router
from app.api.v1.admin import router as admin_router


def create_application() -> FastAPI:
    setup_logging()

    app = FastAPI(title="Storefront API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            # Local development (Vite frontend)
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            settings.FRONTEND_URL.rstrip("/"),
        ],
        # GitHub Codespaces / *.app.github.dev domains
        allow_origin_regex=r"^https:\/\/.*\.app\.github\.dev$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/")
    def root():
        return {"status": "ok", "service": "storefront"}

    # Routers
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(mlm_router, prefix="/api/v1")
    app.include_router(catalog_router, prefix="/api/v1")
    app.include_router(orders_router, prefix="/api/v1")
    app.include_router(ledger_router, prefix="/api/v1")
    app.include_router(invites_router, prefix="/api/v1")
    app.include_router(points_router, prefix="/api/v1")
    app.include_router(admin_router, prefix="/api/v1")

    return app


app = create_application()
