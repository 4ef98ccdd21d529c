from .user import User, UserRole
from .class_session import Class, StudentEnrollment, ClassSession
from .attendance import AttendanceRecord, AttendanceStatus
from .sync_metadata import (
    ExternalSystemMapping, SyncJob, SyncJobItem, SyncHashCache,
    SyncProvider, SyncMode, SyncJobStatus, SyncItemStatus, SyncAction, SyncEntityType
)

__all__ = [
    "User",
    "UserRole",
    "Class",
    "StudentEnrollment",
    "ClassSession",
    "AttendanceRecord",
    "AttendanceStatus",
    "ExternalSystemMapping",
    "SyncJob",
    "SyncJobItem",
    "SyncHashCache",
    "SyncProvider",
    "SyncMode",
    "SyncJobStatus",
    "SyncItemStatus",
    "SyncAction",
    "SyncEntityType",
]
