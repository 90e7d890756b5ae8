"""
Exercise Forms Sync
Blueprint registry and shared request helpers.
"""

from flask import request

from app.core.scope import ExerciseScope

ACTOR_HEADER = "X-Actor-Token"


def request_input() -> dict:
    """Merged request input: query string, then form fields, then JSON body.

    Later sources win, so a JSON body overrides query parameters.
    """
    data = dict(request.args.items())
    if request.form:
        data.update(request.form.items())
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        data.update(body)
    return data


def scope_from_input(data: dict) -> ExerciseScope:
    return ExerciseScope.from_mapping(data)


def actor_from_request(data: dict) -> str:
    """Actor token from the X-Actor-Token header, falling back to ``actor_token``."""
    token = request.headers.get(ACTOR_HEADER) or data.get("actor_token") or ""
    return str(token).strip()
