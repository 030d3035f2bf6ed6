from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from startrader.api.v1.router import router as v1_router
from startrader.core.config import settings
from startrader.core.exceptions.handlers import register_exception_handlers
from startrader.core.lifespan import lifespan
from startrader.core.logging import setup_early_logging
from startrader.core.middlewares import LogRequestsMiddleware
from startrader.core.openapi import custom_openapi
from startrader.core.responses import send_success

# Setup early logging for startup errors
setup_early_logging()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.PROJECT_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "chat", "description": "Trading assistant conversation"},
        {"name": "tools", "description": "UEX trading data lookups"},
        {"name": "cache", "description": "Cache maintenance (cron)"},
    ],
)

# Customize OpenAPI schema
app.openapi = lambda: custom_openapi(app)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add logging middleware
app.add_middleware(LogRequestsMiddleware)

# Register all exception handlers
register_exception_handlers(app)

# Include API routers
app.include_router(v1_router)


@app.get("/health")
async def health_check():
    return send_success(
        message="OK", data={"status": "healthy", "version": settings.PROJECT_VERSION}
    )
