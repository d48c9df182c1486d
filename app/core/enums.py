from enum import Enum


class RecordStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"


class TeacherStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class TransactionMode(str, Enum):
    ATOMIC = "atomic"
    SEQUENTIAL = "sequential"


class GuardOperation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    PROMOTE = "promote"
    ASSIGN = "assign"
    MODIFY = "modify"
