from storefront.models.product import Product
from storefront.models.order import Order
from storefront.models.store_meta import StoreMeta

__all__ = ['Product', 'Order', 'StoreMeta']
