"""Multi-day meal plan generation."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

from nutrition_planner.domain.plans import DayPlan, DietPlan, Meal, MealType
from nutrition_planner.services.calories import CalorieEngine, round_half_up
from nutrition_planner.services.food_selection import FoodSelectionCache, FoodSelector
from nutrition_planner.services.restrictions import (
    ConditionLookup,
    RestrictionAggregator,
)
from nutrition_planner.services.users import UserService

# Share of daily calories per meal, in serving order. Sums to exactly 1.
MEAL_CALORIE_SHARES: tuple[tuple[MealType, Decimal], ...] = (
    (MealType.BREAKFAST, Decimal("0.30")),
    (MealType.LUNCH, Decimal("0.35")),
    (MealType.DINNER, Decimal("0.25")),
    (MealType.SNACK, Decimal("0.10")),
)
MAX_PLAN_DAYS = 31

_logger = logging.getLogger(__name__)


def meal_calories(daily_calories: int, share: Decimal) -> int:
    """Return the calorie target of a meal slot."""
    return round_half_up(Decimal(daily_calories) * share)


@dataclass
class MealPlanGenerator:
    """Builds and persists diet plans from a user's profile.

    Plans are written by full replacement. Concurrent generations for the
    same user are not coordinated; the last completed write wins.
    """

    user_service: UserService
    calorie_engine: CalorieEngine
    restriction_aggregator: RestrictionAggregator
    food_cache: FoodSelectionCache
    food_selector: FoodSelector
    condition_lookup: ConditionLookup
    today: Callable[[], date] = field(default=date.today)

    async def generate(self, user_id: str, days: int = 7) -> DietPlan:
        """Generate a plan for `days` consecutive dates starting today."""
        if not 1 <= days <= MAX_PLAN_DAYS:
            raise ValueError(f"days must be between 1 and {MAX_PLAN_DAYS}")
        user = await self.user_service.require_user(user_id)
        profile = user.health_profile
        daily_calories = self.calorie_engine.compute_daily_calories(profile)
        restrictions = await self.restriction_aggregator.aggregate(
            profile,
            self.condition_lookup,
            extra=user.preferences.excluded_ingredients,
        )
        restriction_list = sorted(restrictions)
        cuisines = list(user.preferences.cuisine_preferences)

        start = self.today()
        day_plans: list[DayPlan] = []
        for offset in range(days):
            meals: list[Meal] = []
            for meal_type, share in MEAL_CALORIE_SHARES:
                target = meal_calories(daily_calories, share)
                foods = await self.food_cache.get_or_compute(
                    target, cuisines, restriction_list, self.food_selector
                )
                meals.append(
                    Meal(type=meal_type, target_calories=target, foods=tuple(foods))
                )
            day_plans.append(
                DayPlan(date=start + timedelta(days=offset), meals=tuple(meals))
            )

        plan = DietPlan(
            daily_calorie_target=daily_calories,
            macro_targets=self.calorie_engine.compute_macro_targets(daily_calories),
            meal_plan=tuple(day_plans),
            generated_at=datetime.now(tz=UTC),
        )
        await self.user_service.save_diet_plan(user_id, plan)
        _logger.info(
            "Generated %s-day plan for user %s at %s kcal with %s restrictions",
            days,
            user_id,
            daily_calories,
            len(restrictions),
        )
        return plan

    async def get_plan(self, user_id: str) -> DietPlan | None:
        """Return the most recently generated plan."""
        return await self.user_service.get_diet_plan(user_id)
