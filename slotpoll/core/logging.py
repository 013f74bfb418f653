import logging
import json
from datetime import datetime, timezone
from fastapi import Request
from ..config import settings


def get_client_ip(request: Request) -> str:
    return (
        request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        or request.headers.get("x-real-ip", "")
        or getattr(request.client, "host", "unknown")
        if request.client
        else "unknown"
    )


def get_user_agent(request: Request) -> str:
    return request.headers.get("user-agent", "unknown")


logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

security_logger = logging.getLogger("security")
audit_logger = logging.getLogger("audit")


class PollAuditLogger:
    @staticmethod
    def log_admin_action(
        request: Request,
        poll_id: int,
        action: str,
        details: dict[str, object] | None = None,
    ):
        log_data: dict[str, object] = {
            "event_type": "poll_admin_action",
            "poll_id": poll_id,
            "action": action,
            "ip_address": get_client_ip(request),
            "user_agent": get_user_agent(request),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        if details:
            log_data.update(details)

        message = f"Poll admin action - {action}: {json.dumps(log_data)}"
        audit_logger.info(message)

    @staticmethod
    def log_access_denied(
        request: Request,
        poll_id: int,
        action: str,
        participant_id: int | None = None,
        token_supplied: bool = True,
    ):
        log_data: dict[str, object] = {
            "event_type": "poll_access_denied",
            "poll_id": poll_id,
            "action": action,
            "token_supplied": token_supplied,
            "ip_address": get_client_ip(request),
            "user_agent": get_user_agent(request),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        if participant_id is not None:
            log_data["participant_id"] = participant_id

        message = f"Poll access denied: {json.dumps(log_data)}"
        security_logger.warning(message)
