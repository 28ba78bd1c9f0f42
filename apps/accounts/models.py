
# Create your models here.
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager
from django.db import models
from django.utils import timezone


class UserManager(BaseUserManager):
    """User manager with username-based authentication."""

    def create_user(self, username, password=None, **extra_fields):
        if not username:
            raise ValueError('Username is required')

        email = extra_fields.pop('email', '')
        user = self.model(
            username=username,
            email=self.normalize_email(email) if email else '',
            **extra_fields
        )
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, username, password=None, **extra_fields):
        extra_fields.setdefault('is_admin', True)

        if extra_fields.get('is_admin') is not True:
            raise ValueError('Superuser must have is_admin=True')

        return self.create_user(username, password, **extra_fields)

    def from_email(self, email):
        """Return the user registered with ``email``, or None."""
        return self.filter(email=email).first()

    def from_name(self, username):
        """Return the user called ``username``, or None."""
        return self.filter(username=username).first()


def _unix_now():
    return int(timezone.now().timestamp())


class User(AbstractBaseUser):
    """Judge account."""

    username = models.CharField(max_length=80, unique=True)
    email = models.CharField(max_length=120, blank=True)
    nickname = models.CharField(max_length=80, blank=True)
    nameplate = models.TextField(blank=True)
    information = models.TextField(blank=True)

    # Denormalized from the submission log, see services.statistics
    ac_num = models.IntegerField(default=0, db_index=True)
    submit_num = models.IntegerField(default=0, db_index=True)

    # Flags
    is_admin = models.BooleanField(default=False)
    is_show = models.BooleanField(default=True, db_index=True)
    public_email = models.BooleanField(default=True)
    prefer_dark_mode = models.BooleanField(default=False)
    is_banned = models.BooleanField(default=False)

    sex = models.IntegerField(default=0)
    rating = models.IntegerField(default=0)
    register_time = models.IntegerField(default=_unix_now)

    objects = UserManager()

    USERNAME_FIELD = 'username'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        db_table = 'users'

    def __str__(self):
        return self.username

    @property
    def is_active(self):
        return not self.is_banned

    @property
    def is_staff(self):
        return self.is_admin

    def get_display_name(self):
        """Return nickname or username."""
        return self.nickname or self.username

    def upload_file_type(self):
        """Tag of the UploadedFile records owned by this user."""
        return upload_file_type(self.pk)


class Privilege(models.TextChoices):
    MANAGE_USER = 'manage_user', 'Manage users'
    MANAGE_PROBLEM = 'manage_problem', 'Manage problems'
    MANAGE_PROBLEM_TAG = 'manage_problem_tag', 'Manage problem tags'
    JUDGE = 'judge', 'Judge'


class UserPrivilege(models.Model):
    """One privilege granted to one user."""

    user = models.ForeignKey('accounts.User', on_delete=models.CASCADE, related_name='privileges')
    privilege = models.CharField(max_length=80, db_index=True)

    class Meta:
        db_table = 'user_privileges'
        constraints = [
            models.UniqueConstraint(fields=['user', 'privilege'], name='unique_user_privilege'),
        ]

    def __str__(self):
        return f"{self.user_id}: {self.privilege}"


def upload_file_type(user_id):
    return f"upload-by-user-{user_id}"


class UploadedFile(models.Model):
    """
    Tracking record of a file in a user's upload directory.

    The bytes live on disk; this row only backs relationship queries.
    """

    type = models.CharField(max_length=80, db_index=True)
    filename = models.CharField(max_length=255)
    size = models.BigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'uploaded_files'
        constraints = [
            models.UniqueConstraint(fields=['type', 'filename'], name='unique_uploaded_file'),
        ]
        ordering = ['filename']

    def __str__(self):
        return f"{self.type}/{self.filename}"
