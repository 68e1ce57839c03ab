import logging

from django.contrib.auth import get_user_model
from django.contrib.contenttypes.models import ContentType
from channels.layers import get_channel_layer
from asgiref.sync import async_to_sync

from notifications.models import Notification
from .serializers import NotificationSerializer

logger = logging.getLogger(__name__)


def _recipient_ids(recipients):
    if recipients is None:
        return []
    if not isinstance(recipients, (list, tuple, set, frozenset)):
        recipients = [recipients]
    ids = []
    for recipient in recipients:
        recipient_id = getattr(recipient, 'pk', recipient)
        if recipient_id is not None and recipient_id not in ids:
            ids.append(recipient_id)
    return ids


def notify(recipients, notification_type, auction, message, extra_data=None):
    """
    Fire-and-forget notification sink.

    Accepts a single user (or user id) or an iterable of them, persists one
    ``Notification`` per recipient and pushes each one to the recipient's
    websocket group. Never raises: a failing sink must not fail the
    operation that triggered it.
    """
    created = []
    try:
        user_ids = _recipient_ids(recipients)
        if not user_ids:
            return created
        content_type = ContentType.objects.get_for_model(auction) if auction is not None else None
        existing = get_user_model().objects.filter(pk__in=user_ids).values_list('pk', flat=True)
        for user_id in existing:
            created.append(Notification.objects.create(
                user_id=user_id,
                notification_type=notification_type,
                message=message,
                extra_data=extra_data,
                content_type=content_type,
                object_id=getattr(auction, 'pk', None),
            ))
    except Exception:
        logger.exception("Failed to store %s notification for auction %s",
                         notification_type, getattr(auction, 'pk', None))
        return created

    for notification in created:
        try:
            send_websocket_notification(notification.user_id, notification)
        except Exception:
            logger.warning("Websocket push failed for notification %s", notification.pk, exc_info=True)
    return created


def send_websocket_notification(user_id, notification):
    """Send notification via WebSocket to specific user"""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    group_name = f'notifications_{user_id}'

    serializer = NotificationSerializer(notification)
    notification_data = serializer.data

    async_to_sync(channel_layer.group_send)(
        group_name,
        {
            'type': 'send_notification',
            'notification': notification_data
        }
    )
