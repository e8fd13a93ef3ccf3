"""Chat session endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from app.dependencies import CurrentUser, get_chat_service, require_role
from app.schemas.chat_schema import (
    ChatDetail,
    ChatListResponse,
    MessageResponse,
    RecordPaymentRequest,
    SendMessageRequest,
    StartChatRequest,
    ToggleBlockRequest,
)
from app.schemas.response_schema import ApiResponse, success_response
from app.services.chat_policy import ChatStatus
from app.services.chat_service import ChatService, chat_detail, chat_summary

router = APIRouter(prefix="/api/v1/chats", tags=["chats"])

ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
ParticipantDep = Annotated[CurrentUser, Depends(require_role("model", "client"))]


@router.post(
    "",
    response_model=ApiResponse[ChatDetail],
    status_code=status.HTTP_201_CREATED,
)
async def start_chat(
    body: StartChatRequest,
    response: Response,
    chat_service: ChatServiceDep,
    current_user: Annotated[CurrentUser, Depends(require_role("client"))],
) -> dict:
    """Start a chat with a model, or resume the live one."""
    chat, created = await chat_service.start_session(body.model_id, current_user.id)
    if not created:
        response.status_code = status.HTTP_200_OK
        return success_response(chat_detail(chat), message="Chat já existe")
    return success_response(chat_detail(chat), status=201, message="Chat iniciado")


@router.get("", response_model=ApiResponse[ChatListResponse])
async def list_chats(
    chat_service: ChatServiceDep,
    current_user: ParticipantDep,
    status_filter: Annotated[ChatStatus, Query(alias="status")] = ChatStatus.ACTIVE,
) -> dict:
    """List the current user's chats, most recent activity first."""
    chats = await chat_service.list_sessions(current_user.id, status_filter)
    summaries = [chat_summary(chat) for chat in chats]
    return success_response(ChatListResponse(count=len(summaries), chats=summaries))


@router.get("/{chat_id}", response_model=ApiResponse[ChatDetail])
async def get_chat(
    chat_id: int,
    chat_service: ChatServiceDep,
    current_user: ParticipantDep,
) -> dict:
    """Get one chat with its messages."""
    chat = await chat_service.get_session(chat_id, current_user.id)
    return success_response(chat_detail(chat))


@router.post(
    "/{chat_id}/messages",
    response_model=ApiResponse[MessageResponse],
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    chat_id: int,
    body: SendMessageRequest,
    chat_service: ChatServiceDep,
    current_user: ParticipantDep,
) -> dict:
    """Send a text message."""
    message = await chat_service.send_message(chat_id, current_user.id, body.content)
    return success_response(
        MessageResponse.model_validate(message), status=201, message="Mensagem enviada"
    )


@router.put("/{chat_id}/block", response_model=ApiResponse[ChatDetail])
async def toggle_block(
    chat_id: int,
    body: ToggleBlockRequest,
    chat_service: ChatServiceDep,
    current_user: ParticipantDep,
) -> dict:
    """Block the chat (reason required) or unblock it if already blocked."""
    chat = await chat_service.toggle_block(chat_id, current_user.id, body.reason)
    message = (
        "Chat bloqueado com sucesso"
        if chat.status == ChatStatus.BLOCKED
        else "Chat desbloqueado com sucesso"
    )
    return success_response(chat_detail(chat), message=message)


@router.put(
    "/{chat_id}/payment",
    response_model=ApiResponse[ChatDetail],
    dependencies=[Depends(require_role("admin"))],
)
async def record_payment(
    chat_id: int,
    body: RecordPaymentRequest,
    chat_service: ChatServiceDep,
) -> dict:
    """Record a payment confirmation for the chat."""
    chat = await chat_service.record_payment(
        chat_id, body.payment_id, body.amount, body.status
    )
    return success_response(chat_detail(chat))
