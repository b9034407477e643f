from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import UploadFile

from portal.auth.dependencies import get_harvest_client, harvest_call
from portal.harvest.client import HarvestClient, ReceiptFile
from portal.routes.common import SUCCESS, is_multipart, query_dict, read_json
from portal.schemas import ExpenseCreate, ExpenseQuery, ExpenseUpdate
from portal.validation import parse_id, validate_receipt, validate_request

router = APIRouter(prefix="/api/harvest/expenses", tags=["expenses"])


async def read_expense_body(request: Request) -> Tuple[Dict[str, Any], Optional[ReceiptFile]]:
    """
    Expense fields plus the optional receipt.

    JSON bodies carry no receipt; multipart bodies carry the fields as strings
    and the file under "receipt".
    """
    if not is_multipart(request):
        return await read_json(request), None

    form = await request.form()
    fields: Dict[str, Any] = {}
    receipt: Optional[ReceiptFile] = None
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if key != "receipt":
                continue
            content = await value.read()
            validate_receipt(value.content_type, len(content))
            receipt = (value.filename or "receipt", content, value.content_type or "application/octet-stream")
        elif value != "":
            fields[key] = value
    return fields, receipt


@router.get("")
async def list_expenses(request: Request, client: HarvestClient = Depends(get_harvest_client)):
    query = validate_request(ExpenseQuery, query_dict(request))
    async with harvest_call("Failed to fetch expenses"):
        return await client.get_expenses(query.to_params())


@router.post("", status_code=201)
async def create_expense(request: Request, client: HarvestClient = Depends(get_harvest_client)):
    """Create an expense, forwarding an image/PDF receipt when one is attached."""
    fields, receipt = await read_expense_body(request)
    body = validate_request(ExpenseCreate, fields)
    async with harvest_call("Failed to create expense", with_receipt=receipt is not None):
        return await client.create_expense(body.to_create(), receipt=receipt)


@router.get("/{expense_id}")
async def get_expense(expense_id: str, client: HarvestClient = Depends(get_harvest_client)):
    expense = parse_id(expense_id, "expense ID")
    async with harvest_call("Failed to fetch expense", expense_id=expense):
        return await client.get_expense(expense)


@router.patch("/{expense_id}")
async def update_expense(
    expense_id: str, request: Request, client: HarvestClient = Depends(get_harvest_client)
):
    expense = parse_id(expense_id, "expense ID")
    fields, receipt = await read_expense_body(request)
    body = validate_request(ExpenseUpdate, fields)
    async with harvest_call("Failed to update expense", expense_id=expense):
        return await client.update_expense(expense, body.to_update(), receipt=receipt)


@router.delete("/{expense_id}")
async def delete_expense(expense_id: str, client: HarvestClient = Depends(get_harvest_client)):
    expense = parse_id(expense_id, "expense ID")
    async with harvest_call("Failed to delete expense", expense_id=expense):
        await client.delete_expense(expense)
    return SUCCESS
