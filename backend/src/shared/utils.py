"""
Common utility functions for Lambda handlers.
"""
import functools
import json
import traceback
from decimal import Decimal
from typing import Any, Callable, Dict

from .config import config
from .errors import MarketplaceError
from .logging import logger, log_event


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal types from DynamoDB."""

    def default(self, o):
        if isinstance(o, Decimal):
            # Convert to int if it's a whole number, otherwise float
            if o % 1 == 0:
                return int(o)
            return float(o)
        return super().default(o)


def format_response(
    status_code: int,
    body: Any,
    headers: Dict[str, str] = None
) -> Dict[str, Any]:
    """
    Format a standard API Gateway response with CORS headers.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON serialized)
        headers: Additional headers to include

    Returns:
        API Gateway response dict
    """
    default_headers = {
        'Access-Control-Allow-Origin': config.ALLOWED_ORIGIN,
        'Access-Control-Allow-Credentials': True,
        'Access-Control-Allow-Headers': 'Content-Type,Authorization',
        'Content-Type': 'application/json'
    }

    if headers:
        default_headers.update(headers)

    return {
        'statusCode': status_code,
        'headers': default_headers,
        'body': json.dumps(body, cls=DecimalEncoder)
    }


def parse_body(event: dict) -> dict:
    """
    Safely parse JSON body from API Gateway event.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        Parsed body dict or empty dict if invalid
    """
    try:
        body = event.get('body') or '{}'
        if isinstance(body, str):
            parsed = json.loads(body)
        else:
            parsed = body
        return parsed if isinstance(parsed, dict) else {}
    except (json.JSONDecodeError, TypeError):
        return {}


def get_path_param(event: dict, param_name: str) -> str:
    """Extract path parameter from event."""
    try:
        return event['pathParameters'][param_name]
    except (KeyError, TypeError):
        return None


def api_handler(func: Callable) -> Callable:
    """
    Wrap an API Gateway handler.

    The wrapped function returns (status_code, body). MarketplaceErrors become
    their mapped status code; anything else is logged and returned as a 500.
    """

    @functools.wraps(func)
    def wrapper(event, context):
        log_event(event)
        try:
            status_code, body = func(event, context)
            return format_response(status_code, body)
        except MarketplaceError as e:
            logger.info(f"{func.__module__}: {e.code} {e.message}")
            return format_response(e.status_code, e.to_body())
        except Exception as e:
            logger.error(f"Unhandled error in {func.__module__}: {e}")
            logger.error(traceback.format_exc())
            return format_response(500, {'error': 'INTERNAL_ERROR', 'message': 'Internal Server Error'})

    return wrapper
