"""Assistant API Routes.

Endpoints:
- POST /threads - Start a thread
- PATCH /threads/{thread_id} - Change assistant type / web search
- POST /threads/{thread_id}/turns - Submit a user turn, returns the reply
- GET /threads/{thread_id}/messages - Stored conversation
"""
from typing import List

from fastapi import APIRouter, HTTPException

from finbot.assistant import schemas
from finbot.assistant.errors import ThreadNotFound
from finbot.assistant.models import Thread
from finbot.assistant.service import get_conversation_service


router = APIRouter()


def _thread_response(thread: Thread) -> schemas.ThreadResponse:
    return schemas.ThreadResponse(
        thread_id=thread.id,
        user_id=thread.user_id,
        assistant_type=thread.assistant_type,
        web_search_enabled=thread.web_search_enabled,
    )


# ============================================================================
# THREADS
# ============================================================================

@router.post("/threads", response_model=schemas.ThreadResponse)
async def create_thread(request: schemas.ThreadCreate):
    """
    Start a new assistant thread.

    A finance thread gets the ledger tools and the user's finance context in
    its system prompt; web_search adds the provider's search tool.
    """
    service = get_conversation_service()
    try:
        thread_id = await service.create_thread(
            user_id=request.user_id,
            first_message=request.first_message,
            web_search=request.web_search,
            assistant_type=request.assistant_type.value,
        )
        thread = await service.get_thread(thread_id)
        return _thread_response(thread)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Error creating thread: {str(e)}"
        )


@router.patch("/threads/{thread_id}", response_model=schemas.ThreadResponse)
async def update_thread(thread_id: str, request: schemas.ThreadUpdate):
    """Switch assistant type or web search for an existing thread."""
    service = get_conversation_service()
    try:
        thread = await service.update_thread_options(
            thread_id,
            assistant_type=request.assistant_type.value if request.assistant_type else None,
            web_search=request.web_search,
        )
        return _thread_response(thread)
    except ThreadNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Error updating thread: {str(e)}"
        )


# ============================================================================
# TURNS
# ============================================================================

@router.post("/threads/{thread_id}/turns", response_model=schemas.TurnResponse)
async def submit_turn(thread_id: str, request: schemas.TurnRequest):
    """
    Submit a user turn and wait for the complete reply.

    Parts sharing a media_group_id are merged into one turn. The request that
    opened the group receives the reply; later requests of the same group
    return immediately with buffered=true.
    """
    service = get_conversation_service()
    try:
        reply = await service.submit_part(thread_id, request.parts, request.media_group_id)
    except ThreadNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Error processing turn: {str(e)}"
        )
    if reply is None:
        return schemas.TurnResponse(reply=None, buffered=True)
    return schemas.TurnResponse(reply=reply)


@router.get("/threads/{thread_id}/messages", response_model=List[schemas.MessageOut])
async def list_messages(thread_id: str):
    """Stored messages of a thread in conversation order."""
    service = get_conversation_service()
    try:
        await service.get_thread(thread_id)
        messages = await service.load_messages(thread_id)
    except ThreadNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Error loading messages: {str(e)}"
        )
    return [
        schemas.MessageOut(id=m.id, role=m.role, content=m.content, created_at=m.created_at)
        for m in messages
    ]
