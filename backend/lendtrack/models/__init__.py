from .inventory import InventoryItem
from .borrows import Borrow, BorrowDetail, ReturnRecord
from .auth import User, SessionToken, PasswordResetToken

__all__ = [
    'InventoryItem',
    'Borrow', 'BorrowDetail', 'ReturnRecord',
    'User', 'SessionToken', 'PasswordResetToken',
]
