from .auth import User, RefreshToken
from .inventory import Product, StockMovement, MOVEMENT_TYPES

__all__ = [
    'User', 'RefreshToken',
    'Product', 'StockMovement', 'MOVEMENT_TYPES',
]
