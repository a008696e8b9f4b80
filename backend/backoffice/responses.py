# Overview: JSON envelope helpers shared by every blueprint.

from flask import jsonify

from .errors import InventoryError


def ok(data=None, status: int = 200, message: str | None = None):
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return jsonify(body), status


def error_response(err: InventoryError):
    return jsonify({
        "success": False,
        "error": type(err).__name__,
        "message": err.message,
        "context": err.context,
    }), err.status_code


def server_error():
    return jsonify({"success": False, "error": "InternalError", "message": "Internal server error"}), 500
