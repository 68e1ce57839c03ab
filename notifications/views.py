# views.py
from django.contrib.contenttypes.models import ContentType
from django.db.models import Count
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from auctions.models import Auction

from .models import Notification
from .serializers import NotificationSerializer


class NotificationPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class NotificationListView(APIView):
    """
    Inbox of the authenticated user, newest first.

    Query params: ``is_read`` (true/false), ``type`` (notification type) and
    ``auction`` (auction id) narrow the list.
    """
    permission_classes = [IsAuthenticated]
    pagination_class = NotificationPagination

    def get(self, request):
        is_read = request.query_params.get('is_read')
        notification_type = request.query_params.get('type')
        auction_id = request.query_params.get('auction')

        notifications = (request.user.user_notifications
                         .select_related('content_type')
                         .order_by('-created_at', '-id'))

        if is_read is not None:
            notifications = notifications.filter(is_read=is_read.lower() == 'true')
        if notification_type:
            notifications = notifications.filter(notification_type=notification_type)
        if auction_id:
            if not auction_id.isdigit():
                return Response({'error': 'auction must be an integer id'}, status=status.HTTP_400_BAD_REQUEST)
            notifications = notifications.filter(
                content_type=ContentType.objects.get_for_model(Auction),
                object_id=int(auction_id),
            )

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(notifications, request)
        return paginator.get_paginated_response(NotificationSerializer(page, many=True).data)


class NotificationDetailView(APIView):
    """Viewing a notification marks it read."""
    permission_classes = [IsAuthenticated]

    def get(self, request, notification_id):
        notification = get_object_or_404(Notification, id=notification_id, user=request.user)
        notification.mark_as_read()
        return Response(NotificationSerializer(notification).data)


class MarkAsReadView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, notification_id):
        notification = get_object_or_404(Notification, id=notification_id, user=request.user)
        notification.mark_as_read()
        return Response({
            'status': 'marked as read',
            'notification': NotificationSerializer(notification).data,
        })


class UnreadCountView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        unread = request.user.get_unread_notifications()
        by_type = {
            row['notification_type']: row['total']
            for row in unread.order_by().values('notification_type').annotate(total=Count('id'))
        }
        return Response({'unread_count': sum(by_type.values()), 'by_type': by_type})


class MarkAllAsReadView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        updated = request.user.mark_all_notifications_read()
        return Response({
            'status': 'success',
            'message': f'Marked {updated} notifications as read',
            'read_count': updated,
        })
