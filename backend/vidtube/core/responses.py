# vidtube/core/responses.py
from typing import Any


def api_response(status_code: int, data: Any, message: str = "Success") -> dict:
    """
    Build the success envelope returned by every route.

    Example:
        {"statusCode": 200, "data": {...}, "message": "User logged in successfully", "success": True}
    """
    return {
        "statusCode": status_code,
        "data": data,
        "message": message,
        "success": status_code < 400,
    }
