"""Errors raised by the planning core."""


class NutritionPlannerError(Exception):
    """Base class for planner errors."""


class InvalidProfileError(NutritionPlannerError):
    """Health profile is missing or has malformed fields."""


class UserNotFoundError(NutritionPlannerError):
    """No user record exists for the given id."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class StoreUnavailableError(NutritionPlannerError):
    """Primary store I/O failed or timed out."""


class SecondaryIndexError(NutritionPlannerError):
    """Secondary index I/O failed. Never leaves the repository."""


class LookupTimeoutError(NutritionPlannerError):
    """A condition lookup did not finish in time."""

    def __init__(self, condition: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Condition lookup for {condition!r} timed out after {timeout_seconds}s"
        )
        self.condition = condition
        self.timeout_seconds = timeout_seconds


class SelectorError(NutritionPlannerError):
    """The food selector failed or timed out."""
