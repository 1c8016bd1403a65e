import requests
from typing import Optional


class WeeklyGrindClient:
    """Simple REST client for the weekly plan API."""

    def __init__(self, base_url: str = "http://localhost:8000", token: Optional[str] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _request(self, method: str, path: str, **kwargs):
        resp = requests.request(method, f"{self.base_url}{path}", headers=self._headers(), **kwargs)
        resp.raise_for_status()
        return resp.json()

    def register(self, username: str, password: str) -> dict:
        return self._request("POST", "/users/register", json={"username": username, "password": password})

    def login(self, username: str, password: str) -> str:
        data = self._request("POST", "/token", json={"username": username, "password": password})
        self.token = data["token"]
        return self.token

    def logout(self) -> None:
        self._request("DELETE", "/auth/session")
        self.token = None

    def list_plans(self) -> list:
        return self._request("GET", "/plans")

    def create_plan(self, name: Optional[str] = None) -> dict:
        return self._request("POST", "/plans", json={"name": name} if name else {})

    def get_plan(self, plan_id: int) -> dict:
        return self._request("GET", f"/plans/{plan_id}")

    def update_plan(self, plan_id: int, **fields) -> dict:
        return self._request("PATCH", f"/plans/{plan_id}", json=fields)

    def swap_exercise(
        self,
        exercise_id: int,
        *,
        library_exercise_id: Optional[int] = None,
        custom_name: Optional[str] = None,
        **fields,
    ) -> dict:
        body = dict(fields)
        if library_exercise_id is not None:
            body["library_exercise_id"] = library_exercise_id
        if custom_name is not None:
            body["custom_name"] = custom_name
        return self._request("PATCH", f"/day-exercises/{exercise_id}", json=body)

    def active_plan(self) -> dict:
        return self._request("GET", "/user-plans/active")

    def start_plan(self, plan_id: int) -> dict:
        return self._request("POST", "/user-plans/start", json={"plan_id": plan_id})

    def complete_exercise(self, user_plan_id: int, day_number: int, day_exercise_id: int) -> dict:
        return self._request(
            "POST",
            f"/user-plans/{user_plan_id}/exercise-complete",
            json={"day_number": day_number, "day_exercise_id": day_exercise_id},
        )

    def uncomplete_exercise(self, user_plan_id: int, day_number: int, day_exercise_id: int) -> dict:
        return self._request(
            "POST",
            f"/user-plans/{user_plan_id}/exercise-uncomplete",
            json={"day_number": day_number, "day_exercise_id": day_exercise_id},
        )

    def complete_day(self, user_plan_id: int, day_number: int) -> dict:
        return self._request("POST", f"/user-plans/{user_plan_id}/complete", json={"day_number": day_number})

    def exercise_library(self, category: Optional[str] = None, equipment: Optional[list] = None) -> list:
        params = {}
        if category:
            params["category"] = category
        if equipment:
            params["equipment"] = ",".join(equipment)
        return self._request("GET", "/exercise-library", params=params)

    def equipment_options(self) -> dict:
        return self._request("GET", "/equipment-options")

    def share_plan(self, plan_id: int) -> dict:
        return self._request("POST", f"/plans/{plan_id}/share")

    def preview_share(self, token: str) -> dict:
        return self._request("GET", f"/share/{token}")

    def accept_share(self, token: str) -> int:
        return self._request("POST", "/share/accept", json={"token": token})["plan_id"]
