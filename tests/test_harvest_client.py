"""
Tests for the Harvest API client.
"""
import json

import httpx
import pytest
import respx

from portal.harvest.client import HarvestAPIError, HarvestClient

BASE = "https://api.harvest.test/v2"


@pytest.fixture
def harvest_client():
    return HarvestClient(access_token="test_token", account_id="12345", base_url=BASE, timeout=5.0)


def test_requires_access_token():
    with pytest.raises(ValueError):
        HarvestClient(access_token="")


@pytest.mark.asyncio
@respx.mock
async def test_sends_auth_and_account_headers(harvest_client):
    route = respx.get(f"{BASE}/users/me").mock(
        return_value=httpx.Response(200, json={"id": 1, "first_name": "Ada"})
    )

    user = await harvest_client.get_current_user()

    assert user["id"] == 1
    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer test_token"
    assert request.headers["Harvest-Account-Id"] == "12345"
    assert request.headers["User-Agent"] == "PMO Harvest Portal (contact@pmohive.com)"


@pytest.mark.asyncio
@respx.mock
async def test_params_drop_none_and_render_bools(harvest_client):
    route = respx.get(f"{BASE}/projects").mock(
        return_value=httpx.Response(200, json={"projects": []})
    )

    await harvest_client.get_projects({"is_active": True, "client_id": None, "page": 2})

    params = route.calls.last.request.url.params
    assert params["is_active"] == "true"
    assert params["page"] == "2"
    assert "client_id" not in params


@pytest.mark.asyncio
@respx.mock
async def test_error_message_prefers_error_description(harvest_client):
    respx.post(f"{BASE}/time_entries").mock(
        return_value=httpx.Response(
            422, json={"error": "invalid", "error_description": "Hours are invalid", "message": "ignored"}
        )
    )

    with pytest.raises(HarvestAPIError) as exc_info:
        await harvest_client.create_time_entry({"hours": 99})

    assert exc_info.value.status_code == 422
    assert exc_info.value.message == "Hours are invalid"
    assert exc_info.value.code == "validation_error"


@pytest.mark.asyncio
@respx.mock
async def test_error_with_non_json_body(harvest_client):
    respx.get(f"{BASE}/clients/9").mock(return_value=httpx.Response(502, text="Bad gateway"))

    with pytest.raises(HarvestAPIError) as exc_info:
        await harvest_client.get_client(9)

    assert exc_info.value.status_code == 502
    assert exc_info.value.message == "Bad gateway"
    assert exc_info.value.code == "upstream_error"


@pytest.mark.asyncio
@respx.mock
async def test_no_retry_on_server_error(harvest_client):
    route = respx.get(f"{BASE}/time_entries").mock(
        return_value=httpx.Response(503, json={"message": "Service Unavailable"})
    )

    with pytest.raises(HarvestAPIError):
        await harvest_client.get_time_entries()

    assert route.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_timeout_maps_to_504(harvest_client):
    respx.get(f"{BASE}/expenses").mock(side_effect=httpx.ConnectTimeout("timed out"))

    with pytest.raises(HarvestAPIError) as exc_info:
        await harvest_client.get_expenses()

    assert exc_info.value.status_code == 504


@pytest.mark.asyncio
@respx.mock
async def test_delete_returns_none(harvest_client):
    respx.delete(f"{BASE}/time_entries/5").mock(return_value=httpx.Response(200))

    assert await harvest_client.delete_time_entry(5) is None


@pytest.mark.asyncio
@respx.mock
async def test_restart_and_stop_use_patch(harvest_client):
    restart = respx.patch(f"{BASE}/time_entries/5/restart").mock(
        return_value=httpx.Response(200, json={"id": 5, "is_running": True})
    )
    stop = respx.patch(f"{BASE}/time_entries/5/stop").mock(
        return_value=httpx.Response(200, json={"id": 5, "is_running": False})
    )

    assert (await harvest_client.restart_time_entry(5))["is_running"] is True
    assert (await harvest_client.stop_time_entry(5))["is_running"] is False
    assert restart.called and stop.called


@pytest.mark.asyncio
@respx.mock
async def test_create_expense_json_body(harvest_client):
    route = respx.post(f"{BASE}/expenses").mock(return_value=httpx.Response(201, json={"id": 3}))

    await harvest_client.create_expense({"project_id": 1, "total_cost": 12.5})

    request = route.calls.last.request
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.content) == {"project_id": 1, "total_cost": 12.5}


@pytest.mark.asyncio
@respx.mock
async def test_create_expense_with_receipt_is_multipart(harvest_client):
    route = respx.post(f"{BASE}/expenses").mock(return_value=httpx.Response(201, json={"id": 3}))

    await harvest_client.create_expense(
        {"project_id": 1, "total_cost": 12.5, "billable": True},
        receipt=("receipt.pdf", b"%PDF-1.4", "application/pdf"),
    )

    request = route.calls.last.request
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    body = request.content
    assert b'name="receipt"; filename="receipt.pdf"' in body
    assert b'name="billable"' in body
    assert b"true" in body


@pytest.mark.asyncio
@respx.mock
async def test_get_all_pages_follows_next_page(harvest_client):
    route = respx.get(f"{BASE}/users/me/project_assignments")
    route.side_effect = [
        httpx.Response(200, json={"project_assignments": [{"id": 1}], "next_page": 2}),
        httpx.Response(200, json={"project_assignments": [{"id": 2}], "next_page": None}),
    ]

    items = await harvest_client.get_all_pages(
        harvest_client.get_current_user_project_assignments, "project_assignments"
    )

    assert [i["id"] for i in items] == [1, 2]
    assert route.calls[1].request.url.params["page"] == "2"


@pytest.mark.asyncio
@respx.mock
async def test_current_user_task_assignments_come_from_project_assignments(harvest_client):
    respx.get(f"{BASE}/users/me/project_assignments").mock(
        return_value=httpx.Response(200, json={
            "project_assignments": [
                {"id": 1, "project": {"id": 10}, "task_assignments": [{"id": 100}]},
                {"id": 2, "project": {"id": 20}, "task_assignments": [{"id": 200}, {"id": 201}]},
            ],
            "next_page": None,
        })
    )

    result = await harvest_client.get_current_user_task_assignments(20)
    missing = await harvest_client.get_current_user_task_assignments(99)

    assert [t["id"] for t in result["task_assignments"]] == [200, 201]
    assert missing == {"task_assignments": []}


@pytest.mark.asyncio
@respx.mock
async def test_time_report_and_user_assignments(harvest_client):
    report = respx.get(f"{BASE}/reports/time/clients").mock(
        return_value=httpx.Response(200, json={"results": [{"client_id": 1, "total_hours": 12.0}]})
    )
    respx.get(f"{BASE}/users/42/project_assignments").mock(
        return_value=httpx.Response(200, json={"project_assignments": []})
    )

    result = await harvest_client.get_time_report({"from": "20240101", "to": "20240131"})
    assignments = await harvest_client.get_user_project_assignments(42)

    assert result["results"][0]["total_hours"] == 12.0
    assert report.calls.last.request.url.params["from"] == "20240101"
    assert assignments == {"project_assignments": []}
