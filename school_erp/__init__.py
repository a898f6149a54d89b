from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from school_erp.core.config import get_upload_folder, settings
from school_erp.core.database import close_db, get_db_context, init_db
from school_erp.core.errors import register_exception_handlers
from school_erp.core.logging import logger
from school_erp.core.redis import close_redis, init_redis
from school_erp.middleware import AuthRedirectMiddleware, RequestIDMiddleware
from school_erp.routes import (
    academic_years, attendance, audit, auth, certificates, classes, dashboard,
    examinations, fees, gate_pass, leave, library, rbac, schools, staff,
    student_portal, students, transport,
)
from school_erp.services.rbac_catalog import seed_permission_catalogue


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Multi-tenant school management API",
        version=settings.VERSION,
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)
    # Added last so it runs first
    app.add_middleware(AuthRedirectMiddleware)

    register_exception_handlers(app)

    for module in (
        auth, schools, academic_years, classes, students, staff, rbac, attendance,
        fees, library, transport, examinations, certificates, leave, gate_pass,
        audit, dashboard, student_portal,
    ):
        app.include_router(module.router)

    app.mount("/uploads", StaticFiles(directory=get_upload_folder()), name="uploads")

    @app.on_event("startup")
    async def startup_event():
        await init_db()
        async with get_db_context() as db:
            await seed_permission_catalogue(db)
        await init_redis()
        logger.info("Application startup completed")

    @app.on_event("shutdown")
    async def shutdown_event():
        await close_redis()
        await close_db()
        logger.info("Application shutdown completed")

    return app
