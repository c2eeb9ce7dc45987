"""
Trello webhook receiver
"""
import base64
import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from fastapi import FastAPI, BackgroundTasks, HTTPException, Request, Response, status
from loguru import logger

from ..trello.change_detector import ChangeSummary


SIGNATURE_HEADER = "X-Trello-Webhook"


def should_trigger_sync(payload: Dict[str, Any]) -> bool:
    """
    Whether a webhook event can change what the sync mirrors.

    Custom field updates, new cards, and card updates that rename the card
    or move it to another list.
    """
    action = payload.get("action")
    if not isinstance(action, dict):
        return False

    action_type = action.get("type")
    if action_type in ("updateCustomFieldItem", "createCard"):
        return True

    if action_type == "updateCard":
        old = (action.get("data") or {}).get("old") or {}
        return bool(old.get("name") or old.get("idList"))

    return False


def compute_signature(secret: str, body: bytes, callback_url: str) -> str:
    """base64 HMAC-SHA1 of the raw body followed by the callback URL"""
    digest = hmac.new(
        secret.encode("utf-8"),
        body + callback_url.encode("utf-8"),
        hashlib.sha1,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(secret: str, body: bytes, callback_url: str,
                     signature: Optional[str]) -> bool:
    if not signature:
        return False
    expected = compute_signature(secret, body, callback_url)
    return hmac.compare_digest(expected, signature)


def create_app(service, secret: Optional[str] = None,
               callback_url: Optional[str] = None) -> FastAPI:
    """
    Build the webhook application.

    Args:
        service: object exposing ``async handle_changes(summary)``
        secret: Trello app secret, signatures are not checked when unset
        callback_url: URL registered with Trello, part of the signed content
    """
    app = FastAPI(title="trello-notion-sync webhook")

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.head("/webhook/trello")
    async def verify_webhook() -> Response:
        logger.info("Webhook verification request received")
        return Response(status_code=status.HTTP_200_OK)

    @app.post("/webhook/trello")
    async def trello_webhook(request: Request, background_tasks: BackgroundTasks) -> Dict[str, Any]:
        body = await request.body()

        if secret:
            signed_url = callback_url or str(request.url)
            if not verify_signature(secret, body, signed_url, request.headers.get(SIGNATURE_HEADER)):
                logger.warning("Invalid webhook signature")
                raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

        try:
            payload = json.loads(body or b"{}")
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")
        if not isinstance(payload, dict):
            payload = {}

        action = payload.get("action") or {}
        card = (action.get("data") or {}).get("card") or {}
        logger.info(
            f"Trello webhook received: {action.get('type')} "
            f"card={card.get('id')} ({card.get('name')!r})"
        )

        if not should_trigger_sync(payload):
            logger.debug(f"Event {action.get('type')} does not require sync")
            return {"status": "ignored", "message": "Event does not trigger sync"}

        logger.info("Board change detected, triggering sync...")
        summary = ChangeSummary(
            changes_detected=1,
            last_check=datetime.now(timezone.utc),
            actions=[{"id": action.get("id"), "type": action.get("type"), "date": action.get("date")}],
        )
        background_tasks.add_task(service.handle_changes, summary)

        return {
            "status": "accepted",
            "message": "Sync triggered",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app
