from .auth import User
from .products import Product, ProductionScan
from .rewards import PointsClaim, CustomerPoints
from .promotions import PromoCode

__all__ = [
    'User',
    'Product', 'ProductionScan',
    'PointsClaim', 'CustomerPoints',
    'PromoCode',
]
