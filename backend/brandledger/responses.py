# Overview: JSON envelope helpers shared by every route: {"success", "data", "message"}.

from __future__ import annotations

from flask import jsonify

from .validation import ServiceError


def ok(data=None, message: str | None = None, status: int = 200, **extra):
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    body.update(extra)
    return jsonify(body), status


def fail(message: str, status: int = 400, **extra):
    body = {"success": False, "message": message}
    body.update(extra)
    return jsonify(body), status


def from_service_error(exc: ServiceError):
    if exc.details:
        return fail(exc.message, exc.status_code, details=exc.details)
    return fail(exc.message, exc.status_code)
