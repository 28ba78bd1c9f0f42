"""
Accounts App - Judge Account Resources

Owns the judge account model and the resources hanging off it:
privilege grants, the per-user upload directory, and the submission
counters derived from the submission log.

Architecture:
- Models: User, UserPrivilege, UploadedFile
- Services: file_storage, privileges, statistics, account_management
- Views: function-based DRF endpoints under /api/users/
- Permissions: CanManageUsers, CanEditUser
"""
