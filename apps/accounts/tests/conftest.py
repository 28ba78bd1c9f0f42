import itertools

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User, UserPrivilege, Privilege
from apps.submissions.models import Submission, SubmissionStatus, SubmissionType


@pytest.fixture(autouse=True)
def clear_cache():
    """Start and finish every test with an empty cache."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def upload_dir(settings, tmp_path):
    """Point UPLOAD_DIR at a fresh directory and disable the normalizer."""
    settings.UPLOAD_DIR = tmp_path / 'upload'
    settings.LINE_ENDING_NORMALIZER = []
    settings.USER_FILE_SIZE_LIMIT = 0
    settings.USER_FILE_COUNT_LIMIT = 0
    return settings.UPLOAD_DIR


@pytest.fixture
def make_source(tmp_path):
    """Return a factory writing content to a fresh file outside UPLOAD_DIR."""
    counter = itertools.count()

    def _make(content=b'content'):
        path = tmp_path / f'incoming-{next(counter)}'
        path.write_bytes(content)
        return path

    return _make


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def user(db):
    """Create and return a test user."""
    return User.objects.create_user(
        username='testuser',
        password='TestPass123!',
        email='testuser@example.com',
        nickname='Test User',
    )


@pytest.fixture
def other_user(db):
    """Create and return another test user."""
    return User.objects.create_user(
        username='otheruser',
        password='OtherPass123!',
        email='otheruser@example.com',
        public_email=False,
    )


@pytest.fixture
def admin_user(db):
    """Create and return an admin."""
    return User.objects.create_superuser(
        username='judgeadmin',
        password='AdminPass123!',
    )


@pytest.fixture
def manager_user(db):
    """Create and return a user holding manage_user."""
    manager = User.objects.create_user(
        username='usermanager',
        password='ManagerPass123!',
    )
    UserPrivilege.objects.create(user=manager, privilege=Privilege.MANAGE_USER)
    return manager


def _client_for(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def authenticated_client(user):
    """Return an API client authenticated as ``user`` using JWT."""
    return _client_for(user)


@pytest.fixture
def other_client(other_user):
    """Return an API client authenticated as ``other_user``."""
    return _client_for(other_user)


@pytest.fixture
def manager_client(manager_user):
    """Return an API client authenticated as ``manager_user``."""
    return _client_for(manager_user)


@pytest.fixture
def make_submission(db):
    """Return a factory for submission log entries."""
    clock = itertools.count(1_600_000_000)

    def _make(
        user,
        problem_id,
        status=SubmissionStatus.ACCEPTED,
        type=SubmissionType.NORMAL,
        language='cpp',
        submit_time=None,
    ):
        return Submission.objects.create(
            user_id=user.pk if isinstance(user, User) else user,
            problem_id=problem_id,
            status=status,
            type=type,
            language=language,
            submit_time=next(clock) if submit_time is None else submit_time,
        )

    return _make


@pytest.fixture
def admin_api_client(admin_user):
    """Return an API client authenticated as ``admin_user``."""
    return _client_for(admin_user)
