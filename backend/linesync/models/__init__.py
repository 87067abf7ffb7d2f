from .roster import Family, StudentStatus, Student, MenuItem
from .lines import LineLog
from .stations import User, Station, StationSession
from .sync import (
    PosTransaction,
    PosPayment,
    PosTransactionDeleteLog,
    PosPaymentDeleteLog,
    CashFamilySequence,
)
from .security import SecurityEvent

__all__ = [
    'Family', 'StudentStatus', 'Student', 'MenuItem',
    'LineLog',
    'User', 'Station', 'StationSession',
    'PosTransaction', 'PosPayment', 'PosTransactionDeleteLog', 'PosPaymentDeleteLog',
    'CashFamilySequence',
    'SecurityEvent',
]
