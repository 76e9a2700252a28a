# src/app.py

import base64
import json
import logging

from vinculum.config import Settings
from vinculum.handler import handle_tracking_request
from vinculum.logger import Logger

# Read once per container; credentials come from the Lambda environment
SETTINGS = Settings.from_env()

Logger(level=SETTINGS.log_level, log_dir=SETTINGS.log_dir)
logger = logging.getLogger(__name__)


def build_response(body: dict, status_code: int = 200, headers: dict = None) -> dict:
    """
    Formats a Lambda proxy integration response for API Gateway.
    """
    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
            **(headers or {})
        },
        "body": json.dumps(body)
    }


def read_body(event: dict) -> dict:
    raw = event.get("body")
    if not raw:
        return {}
    if event.get("isBase64Encoded"):
        raw = base64.b64decode(raw).decode("utf-8")
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object")
    return payload


def lambda_handler(event, context, settings: Settings = None, session=None):
    """
    Entry point for Lambda. Routes /track calls.
    """
    http_method = event.get("httpMethod", "")
    path = event.get("path", "")
    logger.info(f"Received {http_method} {path}")

    if path and not path.rstrip("/").endswith("/track"):
        logger.warning(f"Unknown endpoint: {path}")
        return build_response({"error": f"Unknown path {path}"}, status_code=404)

    body = {}
    if http_method.upper() == "POST":
        try:
            body = read_body(event)
        except ValueError as e:
            # json.JSONDecodeError and UnicodeDecodeError are ValueErrors too
            logger.error(f"Invalid request body: {e}")
            return build_response({"error": "Request body is not valid JSON"}, status_code=400)

    status_code, headers, response_body = handle_tracking_request(
        http_method,
        event.get("queryStringParameters") or {},
        body,
        settings=settings or SETTINGS,
        session=session,
    )
    return build_response(response_body, status_code=status_code, headers=headers)
