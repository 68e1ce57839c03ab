from django.db import models
from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.utils import timezone


class Notification(models.Model):
    NOTIFICATION_TYPES = (
        ('new_bid', 'New Bid'),
        ('outbid', 'Outbid'),
        ('won_auction', 'Won Auction'),
        ('auction_completed', 'Auction Completed'),
        ('auction_cancelled', 'Auction Cancelled'),
        ('auction_extended', 'Auction Extended'),
        ('participant_added', 'Participant Added'),
        ('added_to_auction', 'Added To Auction'),
        ('prebid_approved', 'Pre-bid Approved'),
        ('prebid_rejected', 'Pre-bid Rejected'),
        ('system_alert', 'System Alert'),
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='user_notifications'
    )

    notification_type = models.CharField(max_length=50, choices=NOTIFICATION_TYPES)
    message = models.TextField()
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    read_at = models.DateTimeField(null=True, blank=True)
    extra_data = models.JSONField(null=True, blank=True)
    content_type = models.ForeignKey(ContentType, on_delete=models.CASCADE, null=True, blank=True)
    object_id = models.PositiveIntegerField(null=True, blank=True)
    content_object = GenericForeignKey('content_type', 'object_id')

    class Meta:
        ordering = ['-created_at']
        db_table = 'notifications_notification'

    def mark_as_read(self):
        """Mark notification as read with timestamp"""
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=['is_read', 'read_at'])
