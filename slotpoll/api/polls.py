from fastapi import APIRouter, Body, Query, Request, status
from typing import Annotated

from slotpoll.core.dependencies import (
    OptionalToken,
    ParticipationAccess,
    PollAdmin,
    PollServiceDep,
    RequiredToken,
)
from slotpoll.core.logging import PollAuditLogger
from slotpoll.core.middleware import write_rate_limit
from slotpoll.schemas.common import ErrorResponse
from slotpoll.schemas.poll import (
    AdminStatus,
    MailUpdate,
    MailUpdateResult,
    ParticipantCreate,
    ParticipantRead,
    PollCreate,
    PollEventCreate,
    PollEventRead,
    PollRead,
    PollStatsRead,
)

router = APIRouter()

NOT_FOUND = {404: {"model": ErrorResponse, "description": "Poll not found"}}
ADMIN_ONLY = {
    403: {"model": ErrorResponse, "description": "Poll admin token required"},
    404: {"model": ErrorResponse, "description": "Poll not found"},
}


@router.get(
    "/",
    response_model=None,
    summary="Get own polls",
    description="Polls administered or participated in with the Participant-Token",
)
async def get_polls(
    service: PollServiceDep,
    token: RequiredToken,
    stats: Annotated[
        bool, Query(description="Include event and participant counts")
    ] = False,
) -> list[PollRead] | list[PollStatsRead]:
    return await service.get_polls(token, stats=stats)


@router.put(
    "/mail/participate",
    response_model=MailUpdateResult,
    summary="Set mail for every participation of a token",
)
async def set_mail(mail_data: MailUpdate, service: PollServiceDep):
    updated = await service.set_mail(mail_data)
    return MailUpdateResult(updated=updated)


@router.get("/{poll_id}", response_model=PollRead, responses=NOT_FOUND)
async def get_poll(poll_id: int, service: PollServiceDep):
    return await service.get_poll(poll_id)


@router.get("/{poll_id}/admin", response_model=AdminStatus, responses=NOT_FOUND)
async def is_admin(poll_id: int, service: PollServiceDep, token: OptionalToken):
    return AdminStatus(is_admin=await service.is_admin(poll_id, token))


@router.post(
    "/",
    response_model=PollRead,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"description": "Invalid poll data"}},
)
@write_rate_limit
async def post_poll(request: Request, poll_data: PollCreate, service: PollServiceDep):
    return await service.post_poll(poll_data)


@router.put("/{poll_id}", response_model=PollRead, responses=ADMIN_ONLY)
async def put_poll(
    request: Request,
    poll_id: int,
    poll_data: PollCreate,
    service: PollServiceDep,
    _admin: PollAdmin,
):
    PollAuditLogger.log_admin_action(request, poll_id, action="put_poll")
    return await service.put_poll(poll_id, poll_data)


@router.post(
    "/{poll_id}/clone",
    response_model=PollRead,
    status_code=status.HTTP_201_CREATED,
    responses=ADMIN_ONLY,
)
async def clone_poll(
    request: Request, poll_id: int, service: PollServiceDep, _admin: PollAdmin
):
    PollAuditLogger.log_admin_action(request, poll_id, action="clone_poll")
    return await service.clone_poll(poll_id)


@router.delete("/{poll_id}", response_model=PollRead, responses=ADMIN_ONLY)
async def delete_poll(
    request: Request, poll_id: int, service: PollServiceDep, _admin: PollAdmin
):
    PollAuditLogger.log_admin_action(request, poll_id, action="delete_poll")
    return await service.delete_poll(poll_id)


@router.get(
    "/{poll_id}/events", response_model=list[PollEventRead], responses=NOT_FOUND
)
async def get_events(poll_id: int, service: PollServiceDep):
    return await service.get_events(poll_id)


@router.post(
    "/{poll_id}/events",
    response_model=list[PollEventRead],
    responses={**ADMIN_ONLY, 400: {"model": ErrorResponse, "description": "Too many events"}},
)
async def post_events(
    request: Request,
    poll_id: int,
    events: list[PollEventCreate],
    service: PollServiceDep,
    _admin: PollAdmin,
):
    PollAuditLogger.log_admin_action(
        request, poll_id, action="post_events", details={"events": len(events)}
    )
    return await service.post_events(poll_id, events)


@router.get(
    "/{poll_id}/participate",
    response_model=list[ParticipantRead],
    responses=NOT_FOUND,
)
async def get_participants(poll_id: int, service: PollServiceDep, token: OptionalToken):
    return await service.get_participants(poll_id, token)


@router.post(
    "/{poll_id}/participate",
    response_model=ParticipantRead,
    status_code=status.HTTP_201_CREATED,
    responses={
        **NOT_FOUND,
        400: {"model": ErrorResponse, "description": "Event not part of the poll"},
    },
)
@write_rate_limit
async def post_participation(
    request: Request,
    poll_id: int,
    participant: ParticipantCreate,
    service: PollServiceDep,
):
    return await service.post_participation(poll_id, participant)


@router.put(
    "/{poll_id}/participate/{participant_id}",
    response_model=ParticipantRead,
    responses={
        403: {"model": ErrorResponse, "description": "Not allowed"},
        404: {"model": ErrorResponse, "description": "Participant not found"},
    },
)
async def edit_participation(
    poll_id: int,
    participant_id: int,
    participant: ParticipantCreate,
    service: PollServiceDep,
    _access: ParticipationAccess,
):
    return await service.edit_participation(poll_id, participant_id, participant)


@router.delete(
    "/{poll_id}/participate/{participant_id}",
    response_model=ParticipantRead,
    responses={
        403: {"model": ErrorResponse, "description": "Not allowed"},
        404: {"model": ErrorResponse, "description": "Participant not found"},
    },
)
async def delete_participation(
    poll_id: int,
    participant_id: int,
    service: PollServiceDep,
    _access: ParticipationAccess,
):
    return await service.delete_participation(poll_id, participant_id)


@router.put("/{poll_id}/book", response_model=PollRead, responses=ADMIN_ONLY)
async def book_events(
    request: Request,
    poll_id: int,
    event_ids: Annotated[list[int], Body()],
    service: PollServiceDep,
    _admin: PollAdmin,
):
    PollAuditLogger.log_admin_action(
        request, poll_id, action="book_events", details={"events": event_ids}
    )
    return await service.book_events(poll_id, event_ids)
