"""
FastAPI router for the in-app notification inbox.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from defisats.application.notifications.manage_notifications import (
    DeleteNotificationUseCase,
    ListNotificationsUseCase,
    MarkAllNotificationsReadUseCase,
    MarkNotificationReadUseCase,
    UnreadCountUseCase,
)
from defisats.domain.accounts.entities import User
from defisats.interfaces.dependencies import get_current_user
from defisats.interfaces.notifications.dependencies import (
    get_delete_notification_use_case,
    get_list_notifications_use_case,
    get_mark_all_read_use_case,
    get_mark_read_use_case,
    get_unread_count_use_case,
)
from defisats.interfaces.notifications.schemas import (
    MarkedReadResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from defisats.interfaces.schemas import ERROR_RESPONSES

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get(
    "",
    response_model=list[NotificationResponse],
    responses=ERROR_RESPONSES,
    summary="List my notifications",
    description="Newest first.",
)
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    use_case: ListNotificationsUseCase = Depends(get_list_notifications_use_case),
) -> list[NotificationResponse]:
    return [
        NotificationResponse.model_validate(n)
        for n in use_case.execute(user.id, unread_only, limit, offset)
    ]


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    responses=ERROR_RESPONSES,
    summary="Number of unread notifications",
)
def unread_count(
    user: User = Depends(get_current_user),
    use_case: UnreadCountUseCase = Depends(get_unread_count_use_case),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread=use_case.execute(user.id))


@router.post(
    "/read-all",
    response_model=MarkedReadResponse,
    responses=ERROR_RESPONSES,
    summary="Mark every notification as read",
)
def mark_all_read(
    user: User = Depends(get_current_user),
    use_case: MarkAllNotificationsReadUseCase = Depends(get_mark_all_read_use_case),
) -> MarkedReadResponse:
    return MarkedReadResponse(updated=use_case.execute(user.id))


@router.post(
    "/{notification_id}/read",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=ERROR_RESPONSES,
    summary="Mark one notification as read",
)
def mark_read(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    use_case: MarkNotificationReadUseCase = Depends(get_mark_read_use_case),
) -> Response:
    use_case.execute(user.id, notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=ERROR_RESPONSES,
    summary="Delete a notification",
)
def delete_notification(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    use_case: DeleteNotificationUseCase = Depends(get_delete_notification_use_case),
) -> Response:
    use_case.execute(user.id, notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
