# accounts/models.py
from django.db import models
from django.utils import timezone
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from .managers import CustomUserManager


class Role(models.TextChoices):
    USER = 'user', 'User'
    ADMIN = 'admin', 'Admin'
    SUPERADMIN = 'superadmin', 'Super Admin'


class User(AbstractBaseUser, PermissionsMixin):
    # phone number is the identity invitations are addressed to
    phone_number = models.CharField(max_length=20, unique=True)
    company_name = models.CharField(max_length=200, blank=True)
    person_name = models.CharField(max_length=150, blank=True)
    email = models.EmailField(blank=True)
    company_address = models.TextField(blank=True, null=True)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.USER)
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = CustomUserManager()

    USERNAME_FIELD = 'phone_number'
    REQUIRED_FIELDS = []

    @property
    def is_admin(self):
        return self.role in (Role.ADMIN, Role.SUPERADMIN) or self.is_superuser

    @property
    def display_name(self):
        return self.person_name or self.company_name or self.phone_number

    def get_unread_notifications(self):
        return self.user_notifications.filter(is_read=False)

    def mark_all_notifications_read(self):
        return self.get_unread_notifications().update(is_read=True, read_at=timezone.now())

    def __str__(self):
        return self.phone_number
