from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException

from slotbook.api.errors import to_http_error
from slotbook.api.schemas import AutoChargeRunSchema, BillingResultSchema, BillingRunSchema
from slotbook.application.exceptions import SlotbookError
from slotbook.application.use_cases.auto_charge import AutoChargeScheduler
from slotbook.application.use_cases.billing import BillingAggregator
from slotbook.core.config import settings
from slotbook.wiring.dependencies import get_auto_charge_scheduler, get_billing_aggregator


router = APIRouter()
logger = logging.getLogger(__name__)


def verify_cron_secret(authorization: str | None = Header(None)) -> None:
    secret = settings.CRON_SECRET
    if not secret:
        if settings.ENV.lower() in {"dev", "local"}:
            logger.warning("CRON_SECRET not set; accepting job trigger in dev mode")
            return
        raise HTTPException(status_code=401, detail="Unauthorized")

    expected = f"Bearer {secret}".encode("utf-8")
    provided = (authorization or "").encode("utf-8")
    if not hmac.compare_digest(expected, provided):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.get("/cron/process-charges", response_model=AutoChargeRunSchema, dependencies=[Depends(verify_cron_secret)])
def process_charges(
    scheduler: AutoChargeScheduler = Depends(get_auto_charge_scheduler),
):
    try:
        result = scheduler.run_once()
    except SlotbookError as e:
        logger.exception("Auto-charge run failed", extra={"error": str(e)})
        raise to_http_error(e)
    return AutoChargeRunSchema.model_validate(result.to_dict())


@router.post("/billing/process", response_model=BillingResultSchema, dependencies=[Depends(verify_cron_secret)])
def process_billing(
    req: BillingRunSchema | None = None,
    aggregator: BillingAggregator = Depends(get_billing_aggregator),
):
    try:
        result = aggregator.run_once(req.billing_date if req else None)
    except SlotbookError as e:
        logger.exception("Billing run failed", extra={"error": str(e)})
        raise to_http_error(e)
    return BillingResultSchema.model_validate(result.to_dict())
