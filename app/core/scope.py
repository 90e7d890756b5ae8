"""Exercise scope value object shared by repositories and services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from app.core.exceptions import InvalidArgumentError


def coerce_int(value: Any, default: int = 0) -> int:
    """Best-effort int coercion; missing or garbage input becomes ``default``."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return default


@dataclass(frozen=True)
class ExerciseScope:
    """One team's run of one exercise, optionally pinned to a theme/scenario."""

    access_id: int
    team_no: int
    outline_id: int
    exercise_no: int
    theme_id: int = 0
    scenario_id: int = 0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ExerciseScope":
        return cls(
            access_id=coerce_int(data.get("access_id")),
            team_no=coerce_int(data.get("team_no")),
            outline_id=coerce_int(data.get("outline_id")),
            exercise_no=coerce_int(data.get("exercise_no")),
            theme_id=coerce_int(data.get("theme_id")),
            scenario_id=coerce_int(data.get("scenario_id")),
        )

    def validate(self) -> None:
        """Fail fast before any storage access when an id is not positive."""
        for name in ("access_id", "team_no", "outline_id", "exercise_no"):
            value = getattr(self, name)
            if value <= 0:
                raise InvalidArgumentError(f"Invalid {name}", details={name: value})

    def as_log_extra(self) -> dict:
        return {
            "access_id": self.access_id,
            "team_no": self.team_no,
            "outline_id": self.outline_id,
            "exercise_no": self.exercise_no,
        }


def assert_actor(actor_token: str | None) -> str:
    """Return the stripped actor token or raise when it is empty."""
    token = (actor_token or "").strip()
    if not token:
        raise InvalidArgumentError("Missing actor_token", details={"actor_token": "required"})
    return token
