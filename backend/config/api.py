"""
Django Ninja API configuration.
"""

from django.http import HttpRequest
from ninja import NinjaAPI

from apps.integrations.api import router as integrations_router

api = NinjaAPI(
    title="Loan Console API",
    version="1.0.0",
    description="Admin console API for configuring outbound loan application integrations.",
    openapi_extra={
        "info": {
            "contact": {"name": "API Support"},
        },
        "tags": [
            {
                "name": "integrations",
                "description": "Outbound webhook integrations, field mappings and execution logs",
            },
            {
                "name": "health",
                "description": "Service health and readiness checks",
            },
        ],
        "components": {
            "securitySchemes": {
                "bearerAuth": {
                    "type": "http",
                    "scheme": "bearer",
                    "bearerFormat": "JWT",
                    "description": "Session token issued by the identity provider. Include as: Authorization: Bearer <token>",
                }
            }
        },
    },
)

# Register routers
api.add_router("/integrations", integrations_router)


@api.get("/health", tags=["health"], operation_id="healthCheck", summary="Health check")
def health_check(request: HttpRequest) -> dict:
    """Health check endpoint for load balancer."""
    return {"status": "ok"}
