"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    Header,
    HTTPException,
    Query,
    Request,
    status,
)
from fastapi.responses import JSONResponse

from nutrition_planner.api.models import (
    BmiRequest,
    CalorieNeedsRequest,
    ConditionRequest,
    CreateUserRequest,
    HealthProfileInput,
    PreferencesInput,
)
from nutrition_planner.app_logging import configure_logging
from nutrition_planner.containers import AppContainer
from nutrition_planner.domain.errors import (
    InvalidProfileError,
    SelectorError,
    StoreUnavailableError,
    UserNotFoundError,
)
from nutrition_planner.domain.profiles import HealthProfile
from nutrition_planner.services.calories import compute_bmi
from nutrition_planner.services.meal_plans import MAX_PLAN_DAYS

_ERROR_STATUS: dict[type[Exception], int] = {
    UserNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidProfileError: 422,
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    SelectorError: status.HTTP_502_BAD_GATEWAY,
}


def _container(request: Request) -> AppContainer:
    return request.app.state.container


async def require_token(
    request: Request, x_api_token: str | None = Header(default=None)
) -> None:
    """Ensure requests include the configured API token."""
    expected = _container(request).settings.api_token
    if not x_api_token or x_api_token != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


router = APIRouter(dependencies=[Depends(require_token)])


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: CreateUserRequest, request: Request
) -> dict[str, object]:
    """Create a user with optional health profile and preferences."""
    user = await _container(request).user_service.create_user(
        username=payload.username,
        email=payload.email,
        health_profile=(
            payload.health_profile.model_dump(exclude_none=True)
            if payload.health_profile
            else None
        ),
        preferences=(
            payload.preferences.model_dump(exclude_none=True)
            if payload.preferences
            else None
        ),
    )
    return {"user": user}


@router.get("/users/{user_id}")
async def get_user(user_id: str, request: Request) -> dict[str, object]:
    """Return a user profile."""
    user = await _container(request).user_service.require_user(user_id)
    return {"user": user}


@router.put("/users/{user_id}/health-profile")
async def update_health_profile(
    user_id: str, payload: HealthProfileInput, request: Request
) -> dict[str, object]:
    """Merge health profile fields."""
    user = await _container(request).user_service.update_health_profile(
        user_id, payload.model_dump(exclude_unset=True, exclude_none=True)
    )
    return {"health_profile": user.health_profile}


@router.put("/users/{user_id}/preferences")
async def update_preferences(
    user_id: str, payload: PreferencesInput, request: Request
) -> dict[str, object]:
    """Merge preference fields."""
    user = await _container(request).user_service.update_preferences(
        user_id, payload.model_dump(exclude_unset=True, exclude_none=True)
    )
    return {"preferences": user.preferences}


@router.post("/users/{user_id}/diet-plan")
async def generate_diet_plan(
    user_id: str,
    request: Request,
    days: int | None = Query(default=None, ge=1, le=MAX_PLAN_DAYS),
) -> dict[str, object]:
    """Generate and store a new diet plan."""
    container = _container(request)
    plan = await container.meal_plan_generator.generate(
        user_id, days or container.settings.default_plan_days
    )
    return {"diet_plan": plan}


@router.get("/users/{user_id}/diet-plan")
async def get_diet_plan(user_id: str, request: Request) -> dict[str, object]:
    """Return the stored diet plan."""
    plan = await _container(request).meal_plan_generator.get_plan(user_id)
    if plan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"diet_plan": plan}


@router.post("/users/{user_id}/conditions", status_code=status.HTTP_201_CREATED)
async def add_condition(
    user_id: str, payload: ConditionRequest, request: Request
) -> dict[str, object]:
    """Record a medical condition for a user."""
    condition = await _container(request).user_service.add_condition(
        user_id,
        condition=payload.condition,
        severity=payload.severity,
        symptoms=payload.symptoms,
    )
    return {"condition": condition}


@router.get("/users/{user_id}/conditions")
async def list_conditions(user_id: str, request: Request) -> dict[str, object]:
    """Return a user's recorded conditions."""
    container = _container(request)
    await container.user_service.require_user(user_id)
    return {"conditions": await container.user_service.list_conditions(user_id)}


@router.get("/conditions/{name}/diet")
async def condition_diet(name: str, request: Request) -> dict[str, object]:
    """Return dietary guidance derived for a condition."""
    diet = await _container(request).condition_lookup(name)
    if diet is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return diet.model_dump()


@router.get("/search/users")
async def search_users(
    request: Request, q: str = Query(min_length=1), limit: int = Query(5, ge=1, le=50)
) -> dict[str, object]:
    """Semantic search over user profiles."""
    return {"results": await _container(request).user_service.search_users(q, limit)}


@router.get("/search/conditions")
async def search_conditions(
    request: Request, q: str = Query(min_length=1), limit: int = Query(5, ge=1, le=50)
) -> dict[str, object]:
    """Semantic search over recorded conditions."""
    service = _container(request).user_service
    return {"results": await service.search_conditions(q, limit)}


@router.post("/calculators/bmi")
async def bmi(payload: BmiRequest) -> dict[str, object]:
    """Calculate body mass index."""
    result = compute_bmi(payload.weight, payload.height)
    return {"bmi": result.bmi, "category": result.category}


@router.post("/calculators/calorie-needs")
async def calorie_needs(
    payload: CalorieNeedsRequest, request: Request
) -> dict[str, object]:
    """Calculate BMR, daily calories and macro targets for body metrics."""
    engine = _container(request).calorie_engine
    profile = HealthProfile(
        gender=payload.gender,
        weight=payload.weight,
        height=payload.height,
        age=payload.age,
        activity_level=payload.activity_level,
    )
    daily_calories = engine.compute_daily_calories(profile)
    return {
        "bmr": round(engine.compute_bmr(profile), 1),
        "daily_calories": daily_calories,
        "macro_targets": engine.compute_macro_targets(daily_calories),
    }


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    async def planner_error(request: Request, exc: Exception) -> JSONResponse:
        status_code = _ERROR_STATUS.get(
            type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("Request %s failed: %s", request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    for error_type in _ERROR_STATUS:
        app.add_exception_handler(error_type, planner_error)

    app.include_router(router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
