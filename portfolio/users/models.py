from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import CharField
from django.db.models import EmailField
from django.utils.translation import gettext_lazy as _


class User(AbstractUser):
    """
    Default custom user model for the portfolio backend.

    Admins manage content and watch the live dashboard; everybody else is a
    visitor.
    """

    class Role(models.TextChoices):
        ADMIN = "admin", _("Admin")
        VISITOR = "visitor", _("Visitor")

    # First and last name do not cover name patterns around the globe
    name = CharField(_("Full Name"), blank=True, max_length=255)
    email = EmailField(_("email address"), unique=True)
    role = CharField(
        _("Role"),
        max_length=20,
        choices=Role.choices,
        default=Role.VISITOR,
    )
    # Audit timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def is_privileged(self) -> bool:
        return self.role == self.Role.ADMIN or self.is_staff or self.is_superuser

    @property
    def display_name(self) -> str:
        return self.name or self.get_full_name() or self.username
