from rest_framework import serializers
from apps.accounts.services import STATUS_CATEGORIES
from .models import User


class UserSerializer(serializers.ModelSerializer):
    """Public profile of a judge account."""

    email = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id',
            'username',
            'nickname',
            'email',
            'nameplate',
            'information',
            'ac_num',
            'submit_num',
            'rating',
            'sex',
            'is_admin',
            'is_show',
            'is_banned',
            'register_time',
        ]
        read_only_fields = fields

    def get_email(self, obj):
        """Hide the address unless the user made it public."""
        return obj.email if obj.public_email else None


class PrivilegesSerializer(serializers.Serializer):
    """Full set of privileges granted to a user."""

    privileges = serializers.ListField(
        child=serializers.CharField(max_length=80),
        allow_empty=True,
    )


class PrivilegeDeltaSerializer(PrivilegesSerializer):
    """Privileges after a reconciliation, with the grants it changed."""

    added = serializers.ListField(child=serializers.CharField())
    removed = serializers.ListField(child=serializers.CharField())


class UserFileSerializer(serializers.Serializer):
    filename = serializers.CharField()
    size = serializers.IntegerField()


class UserFileListSerializer(serializers.Serializer):
    files = UserFileSerializer(many=True)
    zip = serializers.JSONField(allow_null=True)


class FileUploadSerializer(serializers.Serializer):
    """Multipart upload; ``filename`` overrides the client-side name."""

    file = serializers.FileField()
    filename = serializers.CharField(max_length=255, required=False)


class UploadOutcomeSerializer(serializers.Serializer):
    filename = serializers.CharField()
    size = serializers.IntegerField()
    replace = serializers.BooleanField()
    old_size = serializers.IntegerField()
    old_count = serializers.IntegerField()


class SubmitInfoSerializer(serializers.Serializer):
    ac_num = serializers.IntegerField()
    submit_num = serializers.IntegerField()


class StatusCountsSerializer(serializers.Serializer):
    """One integer field per verdict category."""

    def get_fields(self):
        return {
            category: serializers.IntegerField()
            for category in STATUS_CATEGORIES
        }


class UserStatisticsSerializer(SubmitInfoSerializer):
    accepted_problems = serializers.ListField(child=serializers.IntegerField())
    statuses = StatusCountsSerializer()
    last_language = serializers.CharField(allow_null=True)
