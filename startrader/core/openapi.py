from fastapi.openapi.utils import get_openapi
from startrader.core.config import settings


def custom_openapi(app):
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title=settings.APP_NAME,
        version=settings.PROJECT_VERSION,
        description=(
            "Chat assistant backend for Star Citizen traders. "
            "The cache sweep endpoint requires the CRON_SECRET bearer token."
        ),
        routes=app.routes,
        tags=app.openapi_tags,
    )
    # Upstream data source, surfaced for API consumers
    openapi_schema["externalDocs"] = {
        "description": "UEX Corp trading data API",
        "url": settings.UEX_API_BASE_URL,
    }
    app.openapi_schema = openapi_schema
    return app.openapi_schema
