import os
import tempfile

from django.conf import settings
from rest_framework import status, serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from apps.core.exceptions import LockTimeoutError
from .models import Privilege
from .permissions import CanEditUser, CanManageUsers
from .serializers import (
    UserSerializer,
    PrivilegesSerializer,
    PrivilegeDeltaSerializer,
    UserFileListSerializer,
    FileUploadSerializer,
    UploadOutcomeSerializer,
    SubmitInfoSerializer,
    UserStatisticsSerializer,
)
from .services import (
    AccountsServiceError,
    UserNotFoundError,
    PrivilegeNotFoundError,
    StorageUnavailableError,
    InvalidFilenameError,
    FileQuotaExceededError,
    get_cached_user,
    destroy_user_account,
    get_privileges,
    set_privileges,
    has_privilege,
    list_user_files,
    upload_user_file,
    delete_user_file,
    refresh_submit_info,
    get_accepted_problem_ids,
    get_submission_statistics,
    get_last_submit_language,
)


# Response serializers for API documentation
class ErrorResponseSerializer(serializers.Serializer):
    error = serializers.CharField()


ERROR_STATUS_CODES = [
    (UserNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidFilenameError, status.HTTP_400_BAD_REQUEST),
    (FileQuotaExceededError, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE),
    (PrivilegeNotFoundError, status.HTTP_409_CONFLICT),
    (StorageUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (LockTimeoutError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def error_response(exc):
    """Translate a domain exception into an error response."""
    for exc_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, exc_type):
            return Response({'error': str(exc)}, status=status_code)
    raise exc


def forbidden():
    return Response({
        'error': 'You do not have permission to perform this action.'
    }, status=status.HTTP_403_FORBIDDEN)


def _can_edit(request, target):
    return CanEditUser().has_object_permission(request, None, target)


def _can_manage_users(request):
    return CanManageUsers().has_permission(request, None)


@extend_schema(
    responses={
        200: UserSerializer,
        204: None,
        403: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
    },
    description="Get a user profile, or delete the account (manage_user only).",
    tags=['users'],
)
@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def user_detail(request, user_id):
    """Get or delete a user account."""
    if request.method == 'DELETE':
        if not _can_manage_users(request):
            return forbidden()
        try:
            destroy_user_account(user_id=user_id)
        except (AccountsServiceError, LockTimeoutError) as e:
            return error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)

    try:
        user = get_cached_user(user_id=user_id)
    except (AccountsServiceError, LockTimeoutError) as e:
        return error_response(e)

    return Response(UserSerializer(user).data)


@extend_schema(
    methods=['GET'],
    responses={
        200: PrivilegesSerializer,
        404: ErrorResponseSerializer,
    },
    description="Get a user's privileges.",
    tags=['users'],
)
@extend_schema(
    methods=['PUT'],
    request=PrivilegesSerializer,
    responses={
        200: PrivilegeDeltaSerializer,
        400: ErrorResponseSerializer,
        403: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
        409: ErrorResponseSerializer,
    },
    description="Replace a user's privileges (manage_user only).",
    tags=['users'],
)
@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def user_privileges(request, user_id):
    """Get or reconcile a user's privileges."""
    try:
        get_cached_user(user_id=user_id)
    except (AccountsServiceError, LockTimeoutError) as e:
        return error_response(e)

    if request.method == 'GET':
        return Response({'privileges': sorted(get_privileges(user_id=user_id))})

    if not _can_manage_users(request):
        return forbidden()

    serializer = PrivilegesSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        delta = set_privileges(
            user_id=user_id,
            privileges=serializer.validated_data['privileges'],
        )
    except AccountsServiceError as e:
        return error_response(e)

    return Response(PrivilegeDeltaSerializer({
        'privileges': sorted(get_privileges(user_id=user_id)),
        'added': list(delta.added),
        'removed': list(delta.removed),
    }).data)


@extend_schema(
    responses={
        200: UserStatisticsSerializer,
        404: ErrorResponseSerializer,
    },
    description="Submission counters, solved problems and verdict breakdown of a user.",
    tags=['users'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_statistics(request, user_id):
    """Get a user's submission statistics."""
    try:
        user = get_cached_user(user_id=user_id)
    except (AccountsServiceError, LockTimeoutError) as e:
        return error_response(e)

    return Response({
        'ac_num': user.ac_num,
        'submit_num': user.submit_num,
        'accepted_problems': get_accepted_problem_ids(user_id=user_id),
        'statuses': get_submission_statistics(user_id=user_id),
        'last_language': get_last_submit_language(user_id=user_id),
    })


@extend_schema(
    request=None,
    responses={
        200: SubmitInfoSerializer,
        403: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
        503: ErrorResponseSerializer,
    },
    description="Recompute ac_num and submit_num from the submission log.",
    tags=['users'],
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def refresh_statistics(request, user_id):
    """Refresh a user's submission counters."""
    try:
        target = get_cached_user(user_id=user_id)
        if not _can_edit(request, target):
            return forbidden()
        user = refresh_submit_info(user_id=user_id)
    except (AccountsServiceError, LockTimeoutError) as e:
        return error_response(e)

    return Response({
        'ac_num': user.ac_num,
        'submit_num': user.submit_num,
    })


def _spool_upload(uploaded):
    """Write an uploaded file to a private temporary path and return it."""
    with tempfile.NamedTemporaryFile(
        delete=False,
        dir=getattr(settings, 'FILE_UPLOAD_TEMP_DIR', None),
    ) as destination:
        for chunk in uploaded.chunks():
            destination.write(chunk)
    return destination.name


@extend_schema(
    request={'multipart/form-data': FileUploadSerializer},
    responses={
        200: UserFileListSerializer,
        201: UploadOutcomeSerializer,
        400: ErrorResponseSerializer,
        403: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
        413: ErrorResponseSerializer,
        503: ErrorResponseSerializer,
    },
    description="List a user's uploaded files, or upload one (replacing a file with the same name).",
    tags=['files'],
)
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def user_files(request, user_id):
    """List or upload a user's files."""
    try:
        target = get_cached_user(user_id=user_id)
    except (AccountsServiceError, LockTimeoutError) as e:
        return error_response(e)

    if not _can_edit(request, target):
        return forbidden()

    if request.method == 'GET':
        listing = list_user_files(user_id=user_id)
        return Response(listing or {'files': [], 'zip': None})

    serializer = FileUploadSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    uploaded = serializer.validated_data['file']
    filename = serializer.validated_data.get('filename') or uploaded.name

    source_path = _spool_upload(uploaded)
    try:
        outcome = upload_user_file(
            user_id=user_id,
            filename=filename,
            source_path=source_path,
            size=uploaded.size,
            no_limit=has_privilege(user=request.user, privilege=Privilege.MANAGE_USER),
        )
    except (AccountsServiceError, LockTimeoutError) as e:
        return error_response(e)
    finally:
        if os.path.exists(source_path):
            os.remove(source_path)

    return Response(
        UploadOutcomeSerializer(outcome).data,
        status=status.HTTP_201_CREATED
    )


@extend_schema(
    responses={
        204: None,
        400: ErrorResponseSerializer,
        403: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
        503: ErrorResponseSerializer,
    },
    description="Delete one of a user's uploaded files. Deleting a missing file succeeds.",
    tags=['files'],
)
@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def user_file_detail(request, user_id, filename):
    """Delete a user's file."""
    try:
        target = get_cached_user(user_id=user_id)
        if not _can_edit(request, target):
            return forbidden()
        delete_user_file(user_id=user_id, filename=filename)
    except (AccountsServiceError, LockTimeoutError) as e:
        return error_response(e)

    return Response(status=status.HTTP_204_NO_CONTENT)
