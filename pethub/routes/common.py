# Overview: Response helpers shared by the API blueprints.

from flask import current_app, jsonify, request

from ..errors import PetHubError, ValidationError


def error_response(exc: PetHubError):
    """Typed service error -> JSON body + status code."""
    return jsonify(exc.to_dict()), exc.status_code


def internal_error(message: str):
    """Log the active exception and hide its details from the client."""
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error", "code": "internal_error"}), 500


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def arg_flag(name: str, default: bool = False) -> bool:
    value = request.args.get(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes"}
