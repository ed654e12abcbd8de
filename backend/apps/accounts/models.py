"""
Accounts models - users, roles and member profiles.
"""

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models

from apps.core.models import TimestampedModel
from apps.core.permissions import Role


class UserManager(BaseUserManager):
    """Custom manager for User model."""

    def create_user(
        self,
        email: str,
        **extra_fields,
    ) -> "User":
        """Create and return a regular user."""
        if not email:
            raise ValueError("Email is required")

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        # No password - the auth provider handles credentials
        user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(
        self,
        email: str,
        **extra_fields,
    ) -> "User":
        """Create and return a superuser (Django admin access, admin role)."""
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", Role.ADMIN)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self.create_user(email, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Community user - the stable internal identity behind a principal.

    This is AUTH_USER_MODEL. The auth provider handles credentials; a local
    row is created on first authentication. Users are never hard-deleted:
    ``suspended`` is the terminal removal state.
    """

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        PENDING_APPROVAL = "pending_approval", "Pending Approval"
        SUSPENDED = "suspended", "Suspended"

    email = models.EmailField(unique=True, db_index=True)
    name = models.CharField(max_length=255, blank=True)
    phone_number = models.CharField(max_length=32, blank=True)

    # Auth provider link, e.g. Stytch 'member-test-...'
    external_auth_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Auth provider member id",
    )

    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.MEMBER,
        db_index=True,
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
    )

    # Django auth compatibility
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(
        default=False,
        help_text="Can access Django admin",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.email

    @property
    def is_suspended(self) -> bool:
        return self.status == self.Status.SUSPENDED


class UserProfile(TimestampedModel):
    """
    Member profile shown in the networking directory.

    Created by the owning user in ``pending`` status; only staff move it to
    approved/rejected. Any owner edit resubmits it (back to pending).
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    # Fields an owner may edit; field_visibility keys are a subset of these
    EDITABLE_FIELDS = (
        "first_name",
        "last_name",
        "village_name",
        "current_location",
        "bio",
    )

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name="profile",
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    village_name = models.CharField(max_length=255, blank=True)
    current_location = models.CharField(max_length=255, blank=True)
    bio = models.TextField(blank=True)
    field_visibility = models.JSONField(
        default=dict,
        blank=True,
        help_text="Field -> bool. Missing fields are visible.",
    )

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    approved_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    approved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.first_name} {self.last_name} ({self.status})"
