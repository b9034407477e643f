"""
Async Harvest API v2 client bound to a single user's OAuth access token.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from portal.config import settings
from portal.utils.http import create_http_client

logger = logging.getLogger(__name__)

Params = Optional[Dict[str, Any]]
# (file name, content, content type)
ReceiptFile = Tuple[str, bytes, str]

_STATUS_CODES = {
    400: "validation_error",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    422: "validation_error",
    429: "rate_limited",
}


class HarvestAPIError(Exception):
    """Non-2xx response (or transport failure) from the Harvest API."""

    def __init__(self, message: str, status_code: int = 500, response: Any = None):
        self.message = message
        self.status_code = status_code
        self.response = response
        self.code = _STATUS_CODES.get(status_code, "upstream_error")
        super().__init__(message)


def _clean_params(params: Params) -> Dict[str, Any]:
    """Drop unset params and render booleans the way Harvest expects."""
    cleaned: Dict[str, Any] = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        cleaned[key] = value
    return cleaned


def _form_fields(data: Dict[str, Any]) -> Dict[str, str]:
    """Stringify a JSON body for multipart upload."""
    fields: Dict[str, str] = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, bool):
            fields[key] = "true" if value else "false"
        else:
            fields[key] = str(value)
    return fields


class HarvestClient:
    """Async Harvest API client."""

    def __init__(
        self,
        access_token: str,
        account_id: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not access_token:
            raise ValueError("A Harvest access token is required")

        self.base_url = (base_url or settings.HARVEST_BASE_URL).rstrip("/")
        self.access_token = access_token
        self.account_id = account_id or settings.HARVEST_ACCOUNT_ID
        self.timeout = timeout or settings.HARVEST_TIMEOUT_SECONDS
        self._http = create_http_client(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "HarvestClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _auth_headers(self) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.access_token}"}
        if self.account_id:
            headers["Harvest-Account-Id"] = self.account_id
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Params = None,
        json_body: Optional[Any] = None,
        form: Optional[Dict[str, str]] = None,
        files: Optional[Dict[str, ReceiptFile]] = None,
    ) -> Any:
        """
        Make a single HTTP request against the Harvest API.
        Maps every failure to HarvestAPIError; nothing is retried.
        """
        url = f"{self.base_url}{path}"
        headers = self._auth_headers()

        try:
            if files is not None:
                # httpx sets the multipart boundary itself
                response = await self._http.request(
                    method.upper(), url, headers=headers,
                    params=_clean_params(params), data=form, files=files,
                )
            else:
                headers["Content-Type"] = "application/json"
                response = await self._http.request(
                    method.upper(), url, headers=headers,
                    params=_clean_params(params), json=json_body,
                )
        except httpx.TimeoutException as e:
            logger.warning(f"Harvest timeout on {method.upper()} {path}")
            raise HarvestAPIError("Harvest API request timed out", 504) from e
        except httpx.HTTPError as e:
            logger.warning(f"Harvest transport error on {method.upper()} {path}: {e}")
            raise HarvestAPIError("Harvest API request failed", 500) from e

        if response.status_code >= 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {"message": response.text}
            if not isinstance(error_data, dict):
                error_data = {"message": str(error_data)}
            message = (
                error_data.get("error_description")
                or error_data.get("message")
                or error_data.get("error")
                or f"Harvest API error: {response.status_code}"
            )
            raise HarvestAPIError(message, response.status_code, error_data)

        if response.status_code == 204 or not response.content:
            return None

        return response.json()

    async def get_all_pages(
        self,
        fetch: Callable[..., Awaitable[Dict[str, Any]]],
        key: str,
        params: Params = None,
    ) -> List[Dict[str, Any]]:
        """Follow next_page until exhausted and return the concatenated items."""
        params = dict(params or {})
        items: List[Dict[str, Any]] = []
        page = params.pop("page", None) or 1
        while page:
            data = await fetch({**params, "page": page})
            items.extend(data.get(key, []))
            page = data.get("next_page")
        return items

    # Current user

    async def get_current_user(self) -> Dict[str, Any]:
        return await self._request("GET", "/users/me")

    async def get_current_user_project_assignments(self, params: Params = None) -> Dict[str, Any]:
        return await self._request("GET", "/users/me/project_assignments", params=params)

    async def get_current_user_task_assignments(self, project_id: int) -> Dict[str, Any]:
        """
        Task assignments of one project as seen by the signed-in user.

        /projects/{id}/task_assignments requires manager rights, so the tasks
        are read from the user's own project assignments instead.
        """
        assignments = await self.get_all_pages(
            self.get_current_user_project_assignments, "project_assignments"
        )
        for assignment in assignments:
            if assignment.get("project", {}).get("id") == project_id:
                return {"task_assignments": assignment.get("task_assignments", [])}
        return {"task_assignments": []}

    # Users

    async def get_users(self, params: Params = None) -> Dict[str, Any]:
        return await self._request("GET", "/users", params=params)

    async def get_user(self, user_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/users/{user_id}")

    async def create_user(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/users", json_body=body)

    async def update_user(self, user_id: int, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", f"/users/{user_id}", json_body=body)

    async def delete_user(self, user_id: int) -> None:
        await self._request("DELETE", f"/users/{user_id}")

    async def get_user_project_assignments(self, user_id: int, params: Params = None) -> Dict[str, Any]:
        return await self._request("GET", f"/users/{user_id}/project_assignments", params=params)

    # Projects

    async def get_projects(self, params: Params = None) -> Dict[str, Any]:
        return await self._request("GET", "/projects", params=params)

    async def get_project(self, project_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/projects/{project_id}")

    async def create_project(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/projects", json_body=body)

    async def update_project(self, project_id: int, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", f"/projects/{project_id}", json_body=body)

    async def delete_project(self, project_id: int) -> None:
        await self._request("DELETE", f"/projects/{project_id}")

    # Task assignments

    async def get_task_assignments(self, project_id: int, params: Params = None) -> Dict[str, Any]:
        return await self._request("GET", f"/projects/{project_id}/task_assignments", params=params)

    # Project user assignments

    async def get_project_user_assignments(self, project_id: int, params: Params = None) -> Dict[str, Any]:
        return await self._request("GET", f"/projects/{project_id}/user_assignments", params=params)

    async def create_user_assignment(self, project_id: int, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", f"/projects/{project_id}/user_assignments", json_body=body)

    async def update_user_assignment(
        self, project_id: int, assignment_id: int, body: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._request(
            "PATCH", f"/projects/{project_id}/user_assignments/{assignment_id}", json_body=body
        )

    async def delete_user_assignment(self, project_id: int, assignment_id: int) -> None:
        await self._request("DELETE", f"/projects/{project_id}/user_assignments/{assignment_id}")

    # Clients

    async def get_clients(self, params: Params = None) -> Dict[str, Any]:
        return await self._request("GET", "/clients", params=params)

    async def get_client(self, client_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/clients/{client_id}")

    async def create_client(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/clients", json_body=body)

    async def update_client(self, client_id: int, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", f"/clients/{client_id}", json_body=body)

    async def delete_client(self, client_id: int) -> None:
        await self._request("DELETE", f"/clients/{client_id}")

    # Time entries

    async def get_time_entries(self, params: Params = None) -> Dict[str, Any]:
        return await self._request("GET", "/time_entries", params=params)

    async def get_time_entry(self, time_entry_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/time_entries/{time_entry_id}")

    async def create_time_entry(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/time_entries", json_body=body)

    async def update_time_entry(self, time_entry_id: int, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", f"/time_entries/{time_entry_id}", json_body=body)

    async def delete_time_entry(self, time_entry_id: int) -> None:
        await self._request("DELETE", f"/time_entries/{time_entry_id}")

    async def restart_time_entry(self, time_entry_id: int) -> Dict[str, Any]:
        return await self._request("PATCH", f"/time_entries/{time_entry_id}/restart")

    async def stop_time_entry(self, time_entry_id: int) -> Dict[str, Any]:
        return await self._request("PATCH", f"/time_entries/{time_entry_id}/stop")

    # Expenses

    async def get_expenses(self, params: Params = None) -> Dict[str, Any]:
        return await self._request("GET", "/expenses", params=params)

    async def get_expense(self, expense_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/expenses/{expense_id}")

    async def create_expense(
        self, body: Dict[str, Any], receipt: Optional[ReceiptFile] = None
    ) -> Dict[str, Any]:
        """Create an expense; with a receipt the body goes out as multipart form data."""
        if receipt is not None:
            return await self._request(
                "POST", "/expenses", form=_form_fields(body), files={"receipt": receipt}
            )
        return await self._request("POST", "/expenses", json_body=body)

    async def update_expense(
        self, expense_id: int, body: Dict[str, Any], receipt: Optional[ReceiptFile] = None
    ) -> Dict[str, Any]:
        if receipt is not None:
            return await self._request(
                "PATCH", f"/expenses/{expense_id}", form=_form_fields(body), files={"receipt": receipt}
            )
        return await self._request("PATCH", f"/expenses/{expense_id}", json_body=body)

    async def delete_expense(self, expense_id: int) -> None:
        await self._request("DELETE", f"/expenses/{expense_id}")

    # Expense categories

    async def get_expense_categories(self, params: Params = None) -> Dict[str, Any]:
        return await self._request("GET", "/expense_categories", params=params)

    # Reports

    async def get_time_report(self, params: Params = None) -> Dict[str, Any]:
        return await self._request("GET", "/reports/time/clients", params=params)
