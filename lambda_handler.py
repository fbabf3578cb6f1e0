"""
AWS Lambda handler for Identity Reconciliation System
This module adapts the FastAPI application to work with AWS Lambda + API Gateway
"""

import logging

from mangum import Mangum
from main import app

logger = logging.getLogger(__name__)

# Lifespan off: engine is created lazily and reused across warm invocations
handler = Mangum(
    app,
    lifespan="off",
    api_gateway_base_path=None,
    exclude_headers=["x-amzn-trace-id"]
)


def lambda_handler(event, context):
    """
    AWS Lambda entry point

    Args:
        event: API Gateway event data
        context: Lambda runtime context

    Returns:
        API Gateway response format
    """
    logger.info(f"Lambda invocation {getattr(context, 'aws_request_id', 'unknown')}")
    return handler(event, context)
