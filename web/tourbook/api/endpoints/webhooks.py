import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Header, Request
from fastapi.responses import Response

from tourbook.deps import SessionDep
from tourbook.services import OrderWebhookService, WhatsAppWebhookService


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/woocommerce")
async def woocommerce_webhook(
    request: Request,
    sess: SessionDep,
    signature: Optional[str] = Header(None, alias="X-WC-Webhook-Signature"),
):
    """Order created/updated. Always answers 200 so WooCommerce stops retrying."""
    body = await request.body()
    return await OrderWebhookService(sess).handle(body, signature)


async def _message_fields(request: Request) -> Dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = json.loads(await request.body() or b"{}")
        except ValueError:
            logger.warning("whatsapp webhook received invalid JSON")
            return {}
        return data if isinstance(data, dict) else {}
    form = await request.form()
    return dict(form)


@router.post("/whatsapp")
async def whatsapp_webhook(request: Request, sess: SessionDep):
    """Twilio inbound message; the reply travels back as TwiML"""
    fields = await _message_fields(request)
    twiml = await WhatsAppWebhookService(sess).handle(fields)
    return Response(content=twiml, media_type="application/xml")
