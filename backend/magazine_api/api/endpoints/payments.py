from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from magazine_api.api.deps import checklist_for, get_gateway, require_gateway
from magazine_api.core.database import get_db
from magazine_api.core.errors import AppError
from magazine_api.core.security import CurrentUser, get_current_user
from magazine_api.core.settings import settings
from magazine_api.schemas.payment import CancelRequest, ChargeRequest
from magazine_api.services import cancellation
from magazine_api.services.checklist import Checklist
from magazine_api.services.first_charge import FirstChargeRequest, charge_first_payment
from magazine_api.services.portone.client import PortOneClient
from magazine_api.services.subscription_status import resolve_subscription_status

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS_STEP_AUTHORIZE = "authorize caller"
STATUS_STEP_RESOLVE = "resolve subscription"
STATUS_STEP_RESPOND = "build response"
STATUS_STEPS = (STATUS_STEP_AUTHORIZE, STATUS_STEP_RESOLVE, STATUS_STEP_RESPOND)


def _unexpected(exc: Exception, event: str, **context) -> AppError:
    logger.exception("%s %s", event, " ".join(f"{k}={v}" for k, v in context.items()))
    return AppError(f"Unexpected failure: {exc}", **context)


@router.post("/payments")
def create_payment(
    body: ChargeRequest,
    current_user: CurrentUser = Depends(get_current_user),
    gateway: PortOneClient | None = Depends(get_gateway),
) -> dict:
    client = require_gateway(gateway)
    request = FirstChargeRequest(
        billing_key=body.billing_key,
        order_name=body.order_name,
        amount=body.amount,
        customer_id=body.customer.id,
        custom_data=body.custom_data,
    )
    try:
        payment_id = charge_first_payment(
            client,
            user_id=current_user.id,
            request=request,
            currency=settings.billing_currency,
        )
    except AppError:
        raise
    except Exception as exc:
        raise _unexpected(exc, "billing.first_charge.unexpected_error", user_id=current_user.id)
    return {"success": True, "paymentId": payment_id}


@router.post("/payments/cancel")
def cancel_payment(
    body: CancelRequest,
    checklist: Checklist = Depends(checklist_for(cancellation.CANCEL_STEPS)),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    gateway: PortOneClient | None = Depends(get_gateway),
) -> dict:
    checklist.mark(cancellation.STEP_PARSE)
    checklist.mark(cancellation.STEP_AUTHORIZE)
    client = require_gateway(gateway)
    checklist.mark(cancellation.STEP_SECRET)

    try:
        cancellation.cancel_subscription(
            db,
            client,
            user_id=current_user.id,
            transaction_key=body.transaction_key,
            reason=settings.billing_cancel_reason,
            checklist=checklist,
        )
    except AppError:
        raise
    except Exception as exc:
        raise _unexpected(exc, "billing.cancel.unexpected_error", user_id=current_user.id)
    return {"success": True, "checklist": checklist.as_list()}


@router.get("/payments/status")
def payment_status(
    checklist: Checklist = Depends(checklist_for(STATUS_STEPS)),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    checklist.mark(STATUS_STEP_AUTHORIZE)
    try:
        status = resolve_subscription_status(db, current_user.id)
    except Exception:
        # Degrade to "not subscribed" so the page still renders.
        logger.exception("billing.status.failed user_id=%s", current_user.id)
        db.rollback()
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "isSubscribed": False,
                "message": "Could not load subscription status",
                "checklist": checklist.as_list(),
            },
        )
    checklist.mark(STATUS_STEP_RESOLVE)

    content: dict = {
        "success": True,
        "isSubscribed": status.is_subscribed,
        "message": "Subscribed" if status.is_subscribed else "Free",
    }
    if status.transaction_key:
        content["transactionKey"] = status.transaction_key
    checklist.mark(STATUS_STEP_RESPOND)
    content["checklist"] = checklist.as_list()
    return content
