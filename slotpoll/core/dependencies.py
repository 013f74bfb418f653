from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from slotpoll.database import get_db
from .background_tasks import notification_tasks
from .logging import PollAuditLogger
from ..services.mail_service import mail_service
from ..services.poll_service import PollService
from typing import Annotated

DatabaseSession = Annotated[AsyncSession, Depends(get_db)]


async def get_poll_service(db: DatabaseSession) -> PollService:
    return PollService(db, mail_service, notification_tasks)


PollServiceDep = Annotated[PollService, Depends(get_poll_service)]


async def get_participant_token(
    participant_token: Annotated[str | None, Header(alias="Participant-Token")] = None,
) -> str | None:
    return participant_token or None


OptionalToken = Annotated[str | None, Depends(get_participant_token)]


async def require_participant_token(token: OptionalToken) -> str:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Participant-Token header required",
        )
    return token


RequiredToken = Annotated[str, Depends(require_participant_token)]


async def require_poll_admin(
    poll_id: int, request: Request, token: OptionalToken, service: PollServiceDep
) -> str:
    if not await service.is_admin(poll_id, token):
        PollAuditLogger.log_access_denied(
            request, poll_id, action=request.method, token_supplied=bool(token)
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Poll admin token required"
        )
    return token or ""


PollAdmin = Annotated[str, Depends(require_poll_admin)]


async def require_participation_access(
    poll_id: int,
    participant_id: int,
    request: Request,
    token: OptionalToken,
    service: PollServiceDep,
) -> str:
    owner = await service.is_participant(poll_id, participant_id, token)
    if not owner and not await service.is_admin(poll_id, token):
        PollAuditLogger.log_access_denied(
            request,
            poll_id,
            action=request.method,
            participant_id=participant_id,
            token_supplied=bool(token),
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to change this participation",
        )
    return token or ""


ParticipationAccess = Annotated[str, Depends(require_participation_access)]
