from storefront.routes.auth import auth_bp
from storefront.routes.checkout import checkout_bp
from storefront.routes.products import products_bp

__all__ = ['auth_bp', 'checkout_bp', 'products_bp']
