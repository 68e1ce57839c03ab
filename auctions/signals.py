from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from .participants import link_invitations


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def attach_pending_invitations(sender, instance, created, **kwargs):
    if created:
        link_invitations(instance)
