from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from magazine_api.api.deps import checklist_for, get_gateway, require_gateway
from magazine_api.core.database import get_db
from magazine_api.core.errors import AppError
from magazine_api.core.settings import settings
from magazine_api.schemas.payment import PortOneWebhookRequest
from magazine_api.services.checklist import Checklist
from magazine_api.services.payment_webhook import STEP_PARSE, STEP_SECRET, WEBHOOK_STEPS, handle_payment_webhook
from magazine_api.services.portone.client import PortOneClient

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/portone")
def portone_webhook(
    body: PortOneWebhookRequest,
    checklist: Checklist = Depends(checklist_for(WEBHOOK_STEPS)),
    db: Session = Depends(get_db),
    gateway: PortOneClient | None = Depends(get_gateway),
) -> dict:
    checklist.mark(STEP_PARSE)
    client = require_gateway(gateway)
    checklist.mark(STEP_SECRET)

    try:
        result = handle_payment_webhook(
            db,
            client,
            payment_id=body.payment_id,
            status=body.status,
            settings=settings,
            checklist=checklist,
        )
    except AppError:
        raise
    except Exception as exc:
        logger.exception("billing.webhook.unexpected_error payment_id=%s status=%s", body.payment_id, body.status)
        raise AppError(f"Unexpected webhook failure: {exc}", payment_id=body.payment_id)

    response: dict = {"success": True, "checklist": checklist.as_list()}
    if result.duplicate:
        response["duplicate"] = True
    return response
