"""
Token authentication for the HTTP surface.
"""

import hmac
from functools import wraps
from typing import Optional

from flask import current_app, jsonify, request


def verify_token(expected: Optional[str], provided: Optional[str]) -> bool:
    """
    Compare a provided token against the configured one.

    Args:
        expected: Configured token
        provided: Token sent by the client

    Returns:
        True only if both are set and equal
    """
    if not expected or not provided:
        return False
    return hmac.compare_digest(str(expected), str(provided))


def request_token() -> Optional[str]:
    """Token from the X-Api-Token header, falling back to the token query arg."""
    return request.headers.get('X-Api-Token') or request.args.get('token')


def api_token_required(view):
    """
    Require the API token on a view when API_TOKEN is configured.

    Without a configured API_TOKEN the view is open.
    """
    @wraps(view)
    def wrapper(*args, **kwargs):
        expected = current_app.config.get('API_TOKEN')
        if expected and not verify_token(expected, request_token()):
            return jsonify({'status': 'error', 'message': 'Invalid or missing API token'}), 401
        return view(*args, **kwargs)

    return wrapper
