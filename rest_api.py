import logging
import os
import time
from typing import List, Optional

from fastapi import (
    FastAPI,
    APIRouter,
    Depends,
    Request,
    Response,
)
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import APP_VERSION
from db import (
    UserRepository,
    AuthSessionRepository,
    ExerciseLibraryRepository,
    PlanRepository,
    PlanDayRepository,
    DayExerciseRepository,
    UserPlanRepository,
    CompletionRepository,
    CompletionExerciseRepository,
    ShareTokenRepository,
    SettingsRepository,
)
from errors import BackendUnavailable, WeeklyGrindError
from auth_service import AuthService
from planner_service import PlanService
from completion_service import CompletionTracker
from share_service import ShareService

logger = logging.getLogger(__name__)


class Credentials(BaseModel):
    username: str
    password: str


class PlanCreate(BaseModel):
    name: Optional[str] = None
    equipment_tags: Optional[List[str]] = None


class PlanUpdate(BaseModel):
    name: Optional[str] = None
    equipment_tags: Optional[List[str]] = None


class DayUpdate(BaseModel):
    type: Optional[str] = None
    name: Optional[str] = None
    duration: Optional[str] = None
    rest_content: Optional[str] = None
    hiit_structure: Optional[str] = None
    hiit_note: Optional[str] = None


class ExerciseCreate(BaseModel):
    custom_name: Optional[str] = None
    library_exercise_id: Optional[int] = None
    section_title: Optional[str] = None
    sets_reps: Optional[str] = None
    notes: Optional[str] = None
    url: Optional[str] = None
    equipment: Optional[str] = None
    sort_order: Optional[int] = None
    is_hiit_move: bool = False


class ExerciseUpdate(BaseModel):
    custom_name: Optional[str] = None
    library_exercise_id: Optional[int] = None
    section_title: Optional[str] = None
    sets_reps: Optional[str] = None
    notes: Optional[str] = None
    url: Optional[str] = None
    equipment: Optional[str] = None
    sort_order: Optional[int] = None
    is_hiit_move: Optional[bool] = None


class StartPlan(BaseModel):
    plan_id: int


class ExerciseToggle(BaseModel):
    day_number: int
    day_exercise_id: int


class DayComplete(BaseModel):
    day_number: int


class ShareAccept(BaseModel):
    token: str


class RateLimiter:
    """Simple in-memory rate limiter."""

    def __init__(self, limit: int = 60, window: int = 60) -> None:
        self.limit = limit
        self.window = window
        self.requests: dict[str, list[float]] = {}

    async def __call__(self, request: Request, call_next):
        ip = request.client.host if request.client else "anon"
        now = time.time()
        history = [t for t in self.requests.get(ip, []) if now - t < self.window]
        if len(history) >= self.limit:
            return JSONResponse({"error": "rate limit exceeded"}, status_code=429)
        history.append(now)
        self.requests[ip] = history
        return await call_next(request)


class WorkoutPlanAPI:
    """Provides REST endpoints for weekly plans, completions and sharing."""

    def __init__(
        self,
        db_path: str = "weeklygrind.db",
        yaml_path: str = "settings.yaml",
        *,
        rate_limit: int | None = None,
        rate_window: int = 60,
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.users = UserRepository(db_path)
        self.sessions = AuthSessionRepository(db_path)
        self.library = ExerciseLibraryRepository(db_path)
        self.plans = PlanRepository(db_path)
        self.plan_days = PlanDayRepository(db_path)
        self.day_exercises = DayExerciseRepository(db_path)
        self.user_plans = UserPlanRepository(db_path)
        self.completions = CompletionRepository(db_path)
        self.completion_exercises = CompletionExerciseRepository(db_path)
        self.share_tokens = ShareTokenRepository(db_path)
        self.auth = AuthService(self.users, self.sessions, self.settings)
        self.planner = PlanService(
            self.plans,
            self.plan_days,
            self.day_exercises,
            self.library,
        )
        self.tracker = CompletionTracker(
            self.user_plans,
            self.completions,
            self.completion_exercises,
            self.plan_days,
            self.day_exercises,
            self.planner,
        )
        self.sharing = ShareService(
            self.share_tokens,
            self.user_plans,
            self.planner,
            self.settings,
        )
        self.app = FastAPI(
            title="Weekly Grind API",
            description="REST API for weekly workout plans, progress tracking and plan sharing",
            version=APP_VERSION,
        )
        if rate_limit is not None:
            limiter = RateLimiter(limit=rate_limit, window=rate_window)
            self.app.middleware("http")(limiter)
        self._setup_error_handlers()
        self._setup_routes()

    def _setup_error_handlers(self) -> None:
        @self.app.exception_handler(WeeklyGrindError)
        async def app_error(request: Request, exc: WeeklyGrindError):
            if exc.status_code >= 500:
                logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
            return JSONResponse({"error": exc.message}, status_code=exc.status_code)

        @self.app.exception_handler(RequestValidationError)
        async def request_error(request: Request, exc: RequestValidationError):
            errors = exc.errors()
            if not errors:
                return JSONResponse({"error": "Invalid request"}, status_code=400)
            first = errors[0]
            field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
            message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
            return JSONResponse({"error": message}, status_code=400)

        @self.app.exception_handler(StarletteHTTPException)
        async def http_error(request: Request, exc: StarletteHTTPException):
            return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

        @self.app.exception_handler(Exception)
        async def unhandled_error(request: Request, exc: Exception):
            logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
            return JSONResponse({"error": "Internal server error"}, status_code=500)

    def _setup_routes(self) -> None:
        bearer = HTTPBearer(auto_error=False)

        def bearer_token(
            credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
        ) -> Optional[str]:
            if not self.settings.get_bool("auth_enabled", True):
                raise BackendUnavailable("Auth backend not configured")
            return credentials.credentials if credentials else None

        def current_user(token: Optional[str] = Depends(bearer_token)) -> dict:
            return self.auth.authenticate(token)

        auth_router = APIRouter(tags=["Auth"])
        plans_router = APIRouter(tags=["Plans"])
        progress_router = APIRouter(prefix="/user-plans", tags=["Progress"])
        library_router = APIRouter(tags=["Exercise Library"])
        share_router = APIRouter(tags=["Sharing"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            self.settings.fetch_all("SELECT 1;")
            return {"status": "ok"}

        @self.app.get("/config")
        def public_config():
            return {
                "app_url": self.settings.get_text("app_url", "http://localhost:8000"),
                "version": APP_VERSION,
                "auth_enabled": self.settings.get_bool("auth_enabled", True),
            }

        @auth_router.post("/users/register", status_code=201)
        def register(body: Credentials):
            if not self.settings.get_bool("auth_enabled", True):
                raise BackendUnavailable("Auth backend not configured")
            return self.auth.register(body.username, body.password)

        @auth_router.post("/token")
        def login(body: Credentials):
            if not self.settings.get_bool("auth_enabled", True):
                raise BackendUnavailable("Auth backend not configured")
            return self.auth.login(body.username, body.password)

        @auth_router.get("/auth/session")
        def session(user: dict = Depends(current_user)):
            return user

        @auth_router.delete("/auth/session")
        def logout(token: Optional[str] = Depends(bearer_token)):
            self.auth.authenticate(token)
            self.auth.logout(token)
            return {"status": "logged out"}

        @plans_router.get("/plans")
        def list_plans(user: dict = Depends(current_user)):
            return self.planner.list_plans(user["id"])

        @plans_router.post("/plans", status_code=201)
        def create_plan(body: PlanCreate | None = None, user: dict = Depends(current_user)):
            name = body.name if body and body.name else self.settings.get_text("default_plan_name", "")
            tags = body.equipment_tags if body else None
            plan_id = self.planner.create_plan_from_template(user["id"], name, tags)
            return self.planner.fetch_plan_tree(plan_id)

        @plans_router.get("/plans/{plan_id}")
        def get_plan(plan_id: int, user: dict = Depends(current_user)):
            return self.planner.get_plan(plan_id, user["id"])

        @plans_router.patch("/plans/{plan_id}")
        def update_plan(plan_id: int, body: PlanUpdate, user: dict = Depends(current_user)):
            return self.planner.update_plan(plan_id, user["id"], body.name, body.equipment_tags)

        @plans_router.delete("/plans/{plan_id}")
        def delete_plan(plan_id: int, user: dict = Depends(current_user)):
            self.planner.delete_plan(plan_id, user["id"])
            return {"status": "deleted"}

        @plans_router.patch("/plan-days/{day_id}")
        def update_day(day_id: int, body: DayUpdate, user: dict = Depends(current_user)):
            return self.planner.update_day(day_id, user["id"], body.model_dump(exclude_unset=True))

        @plans_router.post("/plan-days/{day_id}/exercises", status_code=201)
        def add_exercise(day_id: int, body: ExerciseCreate, user: dict = Depends(current_user)):
            return self.planner.add_exercise(day_id, user["id"], body.model_dump(exclude_unset=True))

        @plans_router.patch("/day-exercises/{exercise_id}")
        def update_exercise(exercise_id: int, body: ExerciseUpdate, user: dict = Depends(current_user)):
            return self.planner.update_exercise(
                exercise_id, user["id"], body.model_dump(exclude_unset=True)
            )

        @plans_router.delete("/day-exercises/{exercise_id}")
        def remove_exercise(exercise_id: int, user: dict = Depends(current_user)):
            self.planner.remove_exercise(exercise_id, user["id"])
            return {"status": "deleted"}

        @plans_router.get("/day-exercises/{exercise_id}/display-name")
        def exercise_display_name(exercise_id: int, user: dict = Depends(current_user)):
            return {"name": self.planner.exercise_display_name(exercise_id, user["id"])}

        @progress_router.get("/active")
        def active_plan(user: dict = Depends(current_user)):
            return self.tracker.active_plan_view(user["id"])

        @progress_router.post("/start")
        def start_plan(body: StartPlan, response: Response, user: dict = Depends(current_user)):
            user_plan, created = self.tracker.start_plan(user["id"], body.plan_id)
            response.status_code = 201 if created else 200
            return user_plan

        @progress_router.post("/{user_plan_id}/exercise-complete")
        def exercise_complete(user_plan_id: int, body: ExerciseToggle, user: dict = Depends(current_user)):
            return self.tracker.mark_exercise_complete(
                user_plan_id, user["id"], body.day_number, body.day_exercise_id
            )

        @progress_router.post("/{user_plan_id}/exercise-uncomplete")
        def exercise_uncomplete(user_plan_id: int, body: ExerciseToggle, user: dict = Depends(current_user)):
            return self.tracker.mark_exercise_incomplete(
                user_plan_id, user["id"], body.day_number, body.day_exercise_id
            )

        @progress_router.post("/{user_plan_id}/complete")
        def complete_day(user_plan_id: int, body: DayComplete, user: dict = Depends(current_user)):
            return self.tracker.complete_day(user_plan_id, user["id"], body.day_number)

        @library_router.get("/exercise-library")
        def exercise_library(category: str = None, equipment: str = None):
            return self.planner.search_library(category, equipment)

        @library_router.get("/equipment-options")
        def equipment_options():
            return self.planner.equipment_options()

        @share_router.post("/plans/{plan_id}/share")
        def share_plan(plan_id: int, user: dict = Depends(current_user)):
            return self.sharing.issue(plan_id, user["id"])

        @share_router.get("/share/{token}")
        def share_preview(token: str):
            return self.sharing.preview(token)

        @share_router.post("/share/accept", status_code=201)
        def share_accept(body: ShareAccept, user: dict = Depends(current_user)):
            return self.sharing.accept(body.token, user["id"])

        self.app.include_router(auth_router)
        self.app.include_router(plans_router)
        self.app.include_router(progress_router)
        self.app.include_router(library_router)
        self.app.include_router(share_router)


api = WorkoutPlanAPI(os.environ.get("WEEKLYGRIND_DB", "weeklygrind.db"))
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
