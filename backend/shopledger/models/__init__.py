from .auth import User, SessionToken
from .inventory import Product, StockMovement, AdditionalStock
from .customers import Lender
from .sales import Sale, Payment
from .documents import Return, WeeklyStockReport, DocumentSequence, ActivityLog

__all__ = [
    'User', 'SessionToken',
    'Product', 'StockMovement', 'AdditionalStock',
    'Lender',
    'Sale', 'Payment',
    'Return', 'WeeklyStockReport', 'DocumentSequence', 'ActivityLog',
]
