from enum import Enum


class UserRole(str, Enum):
    SUPERADMIN = "superadmin"
    SCHOOL_ADMIN = "school_admin"


class StudentStatus(str, Enum):
    ACTIVE = "active"
    TRANSFERRED = "transferred"
    GRADUATED = "graduated"
    WITHDRAWN = "withdrawn"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class ErrorCode(str, Enum):
    """Machine-readable failure codes. The only field callers should branch on."""

    # validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_ID = "INVALID_ID"
    INVALID_PASSWORD = "INVALID_PASSWORD"
    # authentication
    NO_TOKEN = "NO_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    AUTH_FAILED = "AUTH_FAILED"
    NO_AUTH = "NO_AUTH"
    # authorization
    FORBIDDEN = "FORBIDDEN"
    ACCESS_DENIED = "ACCESS_DENIED"
    NO_PERMISSION = "NO_PERMISSION"
    ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"
    # not found
    NOT_FOUND = "NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    SCHOOL_NOT_FOUND = "SCHOOL_NOT_FOUND"
    # conflict
    DUPLICATE = "DUPLICATE"
    DUPLICATE_ERROR = "DUPLICATE_ERROR"
    USER_EXISTS = "USER_EXISTS"
    CONFLICT = "CONFLICT"
    # business rule
    BUSINESS_ERROR = "BUSINESS_ERROR"
    CAPACITY_FULL = "CAPACITY_FULL"
    INVALID_OPERATION = "INVALID_OPERATION"
    # server
    SERVER_ERROR = "SERVER_ERROR"
