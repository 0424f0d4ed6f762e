from __future__ import annotations

from fastapi import APIRouter, Depends

from slotbook.api.errors import to_http_error
from slotbook.api.schemas import StatementSchema, TransactionRequestSchema, TransactionSchema
from slotbook.application.exceptions import SlotbookError
from slotbook.application.use_cases.billing import BillingAggregator
from slotbook.wiring.dependencies import get_billing_aggregator


router = APIRouter()


@router.post("/transactions", response_model=TransactionSchema, status_code=201)
def record_transaction(
    req: TransactionRequestSchema,
    aggregator: BillingAggregator = Depends(get_billing_aggregator),
):
    try:
        transaction = aggregator.record_transaction(
            account_id=req.account_id,
            amount=req.amount,
            department=req.department,
            description=req.description,
        )
    except SlotbookError as e:
        raise to_http_error(e)
    return TransactionSchema.from_entity(transaction)


@router.post("/statements/{statement_id}/pay", response_model=StatementSchema)
def pay_statement(
    statement_id: str,
    aggregator: BillingAggregator = Depends(get_billing_aggregator),
):
    try:
        statement = aggregator.mark_statement_paid(statement_id)
    except SlotbookError as e:
        raise to_http_error(e)
    return StatementSchema.from_entity(statement)
