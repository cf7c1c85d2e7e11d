from fastapi import APIRouter, Depends, Header, HTTPException, Query
from typing import Optional

from api.dependencies.services import get_meeting_service
from api.dependencies.user import get_user_id_from_header
from core.meetings.models import (
    ConfirmMeetingRequest,
    ConfirmMeetingResponse,
    MeetingListResponse,
    MeetingRequestResponse,
    SchedulingResponse,
    SlotResponse,
    UpdateMeetingRequest,
)
from core.scheduling.errors import InvalidMeetingRequestError, NotFoundError, SchedulingConflictError
from core.scheduling.meeting_service import MeetingService, SchedulingResult
from core.scheduling.models import MeetingDraft
from utils.logger import logger


router = APIRouter(prefix="/meetings")


def _to_response(result: SchedulingResult) -> SchedulingResponse:
    return SchedulingResponse(
        meeting_request_id=result.meeting_request_id,
        status=result.status,
        suggested_slots=[SlotResponse.from_slot(slot) for slot in result.suggested_slots],
        alternative_options=result.alternative_options,
        analysis=result.analysis,
        participant_feedback=result.participant_feedback
    )


@router.post("", response_model=SchedulingResponse, status_code=201)
async def create_meeting(
    draft: MeetingDraft,
    x_user_id: Optional[str] = Header(None),
    service: MeetingService = Depends(get_meeting_service)
):
    """Create a meeting request and get ranked slot suggestions"""
    user_id = get_user_id_from_header(x_user_id)

    try:
        result = await service.create(user_id, draft)
        return _to_response(result)
    except InvalidMeetingRequestError as e:
        raise HTTPException(status_code=400, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Error creating meeting request: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/suggest", response_model=SchedulingResponse)
async def suggest_meeting_slots(
    draft: MeetingDraft,
    x_user_id: Optional[str] = Header(None),
    service: MeetingService = Depends(get_meeting_service)
):
    """Preview slot suggestions without saving a meeting request"""
    user_id = get_user_id_from_header(x_user_id)

    try:
        result = await service.suggest(user_id, draft)
        return _to_response(result)
    except InvalidMeetingRequestError as e:
        raise HTTPException(status_code=400, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Error suggesting meeting slots: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=MeetingListResponse)
async def list_meetings(
    status: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    x_user_id: Optional[str] = Header(None),
    service: MeetingService = Depends(get_meeting_service)
):
    """List the caller's meeting requests"""
    user_id = get_user_id_from_header(x_user_id)

    try:
        requests, total = await service.list(user_id, status=status, skip=skip, limit=limit)
        return MeetingListResponse(
            meetings=[MeetingRequestResponse.from_request(request) for request in requests],
            total=total
        )
    except Exception as e:
        logger.error(f"Error listing meeting requests: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{request_id}", response_model=MeetingRequestResponse)
async def get_meeting(
    request_id: str,
    x_user_id: Optional[str] = Header(None),
    service: MeetingService = Depends(get_meeting_service)
):
    """Get a meeting request with its current slots"""
    user_id = get_user_id_from_header(x_user_id)

    try:
        request, slots = await service.get(user_id, request_id)
        return MeetingRequestResponse.from_request(request, slots)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except Exception as e:
        logger.error(f"Error getting meeting request {request_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/{request_id}", response_model=SchedulingResponse)
async def update_meeting(
    request_id: str,
    changes: UpdateMeetingRequest,
    x_user_id: Optional[str] = Header(None),
    service: MeetingService = Depends(get_meeting_service)
):
    """Edit a pending meeting request and regenerate its slots"""
    user_id = get_user_id_from_header(x_user_id)

    try:
        result = await service.update(user_id, request_id, changes.model_dump(exclude_unset=True))
        return _to_response(result)
    except InvalidMeetingRequestError as e:
        raise HTTPException(status_code=400, detail=e.to_detail())
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except SchedulingConflictError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except Exception as e:
        logger.error(f"Error updating meeting request {request_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{request_id}/confirm", response_model=ConfirmMeetingResponse)
async def confirm_meeting(
    request_id: str,
    body: ConfirmMeetingRequest,
    x_user_id: Optional[str] = Header(None),
    service: MeetingService = Depends(get_meeting_service)
):
    """Confirm one suggested slot and add it to the organizer's calendar"""
    user_id = get_user_id_from_header(x_user_id)

    try:
        return await service.confirm(user_id, request_id, body.slot_id, body.custom_message)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except SchedulingConflictError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except Exception as e:
        logger.error(f"Error confirming meeting request {request_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{request_id}/cancel", response_model=MeetingRequestResponse)
async def cancel_meeting(
    request_id: str,
    x_user_id: Optional[str] = Header(None),
    service: MeetingService = Depends(get_meeting_service)
):
    """Cancel a pending meeting request"""
    user_id = get_user_id_from_header(x_user_id)

    try:
        request = await service.cancel(user_id, request_id)
        return MeetingRequestResponse.from_request(request)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except SchedulingConflictError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except Exception as e:
        logger.error(f"Error cancelling meeting request {request_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
