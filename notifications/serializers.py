# serializers.py
from rest_framework import serializers

from auctions.models import Auction

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    related_object = serializers.SerializerMethodField()
    extra_data = serializers.SerializerMethodField()
    read_at = serializers.DateTimeField(format="%Y-%m-%d %H:%M:%S", read_only=True)
    created_at = serializers.DateTimeField(format="%Y-%m-%d %H:%M:%S", read_only=True)

    class Meta:
        model = Notification
        fields = [
            'id', 'notification_type', 'message',
            'is_read', 'read_at', 'created_at', 'related_object', 'extra_data'
        ]
        read_only_fields = fields

    def get_related_object(self, obj):
        target = obj.content_object
        if target is None:
            # the auction may have been deleted since
            return None
        if isinstance(target, Auction):
            return {
                'type': 'auction',
                'id': target.pk,
                'auction_no': target.auction_no,
                'title': target.title,
                'status': target.status,
            }
        return {'type': obj.content_type.model, 'id': obj.object_id}

    def get_extra_data(self, obj):
        return obj.extra_data or None
