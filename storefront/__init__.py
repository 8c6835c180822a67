"""Storefront service: catalog, OTP login and inventory-consistent checkout."""
