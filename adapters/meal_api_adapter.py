"""REST adapter for the meal store.

Every failure (no response, non-success status, a body that is not the
expected JSON) surfaces as StoreError so callers handle one error type.
"""

from typing import Any, Dict, List, Optional, Type, TypeVar
import logging

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from app.exceptions import StoreError
from domain.schemas.meal_schemas import DaySchedule, MealEntry, dump_schedule
from domain.schemas.sync_schemas import (
    GenerateCodeResponse,
    SyncDataResponse,
    UseCodeResponse,
)

logger = logging.getLogger("foodscheduler.api_client")

ModelT = TypeVar("ModelT", bound=BaseModel)

_meal_list = TypeAdapter(List[MealEntry])


def _error_message(body: Any, status_code: int) -> str:
    """Pull the human-readable message out of an error envelope."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return f"HTTP {status_code}"


class MealApiClient:
    """Async client for the meal store's REST endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url, timeout=timeout, transport=transport
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise StoreError(f"Could not reach meal store: {exc}") from exc

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            logger.error("Non-JSON response from %s %s: %s", method, path, response.status_code)
            raise StoreError(
                f"Server returned non-JSON response: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise StoreError(
                f"Server returned malformed JSON: {response.status_code}",
                status_code=response.status_code,
            ) from exc

        if not response.is_success:
            raise StoreError(
                _error_message(body, response.status_code),
                status_code=response.status_code,
                details=body,
            )
        return body

    @staticmethod
    def _parse(model: Type[ModelT], body: Any) -> ModelT:
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            raise StoreError(f"Unexpected response from meal store: {exc}") from exc

    # ------------------ Meals ------------------

    async def list_meals(
        self,
        date: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[MealEntry]:
        params: Dict[str, str] = {}
        if date:
            params["date"] = date
        elif start_date and end_date:
            params["startDate"] = start_date
            params["endDate"] = end_date
        body = await self._request("GET", "/meals", params=params)
        try:
            return _meal_list.validate_python(body)
        except ValidationError as exc:
            raise StoreError(f"Unexpected response from meal store: {exc}") from exc

    async def create_meal(self, date: str, time: str, food: str) -> MealEntry:
        body = await self._request(
            "POST", "/meals", json={"date": date, "time": time, "food": food}
        )
        return self._parse(MealEntry, body)

    async def update_meal(self, meal_id: str, time: str, food: str) -> MealEntry:
        body = await self._request(
            "PUT", f"/meals/{meal_id}", json={"time": time, "food": food}
        )
        return self._parse(MealEntry, body)

    async def delete_meal(self, meal_id: str) -> None:
        await self._request("DELETE", f"/meals/{meal_id}")

    # ------------------ Sync ------------------

    async def generate_code(self, device_name: str) -> str:
        body = await self._request(
            "POST", "/sync/generate-code", json={"deviceName": device_name}
        )
        return self._parse(GenerateCodeResponse, body).code

    async def use_code(self, code: str, device_id: str) -> UseCodeResponse:
        body = await self._request(
            "POST", "/sync/use-code", json={"code": code, "deviceId": device_id}
        )
        return self._parse(UseCodeResponse, body)

    async def sync_data(
        self, device_id: str, meals: DaySchedule, last_sync: Optional[str] = None
    ) -> DaySchedule:
        body = await self._request(
            "POST",
            "/sync/data",
            json={
                "deviceId": device_id,
                "meals": dump_schedule(meals),
                "lastSync": last_sync,
            },
        )
        return self._parse(SyncDataResponse, body).merged_meals
