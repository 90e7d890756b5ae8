"""Standardised API responses.

Every forms endpoint answers with the same envelope::

    {"ok": bool, "data": {...} | null, "error": str | null}

Usage
-----
    from app.utils.errors import api_error, api_ok, api_conflict, E

    return api_ok(result.to_dict())
    return api_conflict(conflict.to_dict())
    return api_error(E.VALIDATION_INVALID, "Invalid access_id", details={"access_id": 0})
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention:
     • ERR_  prefix for standard application errors
     • version_conflict is the wire value polling clients already match on
    """

    # Validation – HTTP 422
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_VERSION = "version_conflict"

    # Rate limit – HTTP 429
    RATE_LIMITED = "ERR_RATE_LIMITED"

    # Server – HTTP 500 / 503
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 422,
    E.VALIDATION_INVALID: 422,
    E.NOT_FOUND: 404,
    E.CONFLICT_VERSION: 409,
    E.RATE_LIMITED: 429,
    E.DATABASE: 503,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (offending field values, limits, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "ok": False,
        "data": None,
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def api_ok(data, status: int = 200):
    return jsonify({"ok": True, "data": data, "error": None}), status


def api_conflict(data):
    """409 carrying the canonical state so the client can resync in place."""
    return jsonify({
        "ok": False,
        "data": data,
        "error": E.CONFLICT_VERSION,
        "code": E.CONFLICT_VERSION,
    }), _DEFAULT_STATUS[E.CONFLICT_VERSION]
