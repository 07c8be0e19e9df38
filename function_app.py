"""
Article Studio - Azure Functions Application

Serverless handlers for the Article Studio web client: AI article
generation with per-tier quotas, user lookup and search, and media
storage, with Supabase as the database, auth provider and file store.
"""

import azure.functions as func
import datetime
import json
import logging
import os

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create the main Function App instance
app = func.FunctionApp(http_auth_level=func.AuthLevel.ANONYMOUS)

from generation.routes import register_generation_routes
from media.routes import register_media_routes
from quota.routes import register_quota_routes
from users.routes import register_user_routes

# =============================================================================
# Health Check Endpoint
# =============================================================================

@app.route(route="health", methods=["GET"])
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """Health check endpoint to verify the Azure Function is running."""
    logger.info("Health check endpoint called.")

    health_status = {
        "status": "healthy",
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "service": "Article Studio Functions",
        "version": "1.0.0",
        "environment": os.environ.get("AZURE_FUNCTIONS_ENVIRONMENT", "Development")
    }

    return func.HttpResponse(
        json.dumps(health_status),
        status_code=200,
        mimetype="application/json"
    )

# =============================================================================
# Function groups
# =============================================================================

register_generation_routes(app)
register_quota_routes(app)
register_user_routes(app)
register_media_routes(app)
