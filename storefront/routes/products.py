from flask import Blueprint, jsonify, request

from storefront.routes.helpers import json_body, text_field
from storefront.services import simulate_latency
from storefront.services.catalog_service import (
    create_product,
    delete_product,
    get_product,
    list_products,
    restock,
    set_price,
)
from storefront.services.description_service import generate_description

products_bp = Blueprint('products', __name__)

# NOTE: the mutating routes below do not check the caller's role. Callers
# in front of this service must restrict them to OWNER identities.


def _not_found(product_id):
    return jsonify({
        "success": False,
        "error_code": "PRODUCT_NOT_FOUND",
        "message": f"Product {product_id} does not exist."
    }), 404


@products_bp.route('/products', methods=['GET'])
def list_products_route():
    """
    List the catalog
    ---
    tags:
      - Products
    parameters:
      - name: category
        in: query
        type: string
        required: false
    responses:
      200:
        description: All products with their current stock
    """
    simulate_latency('list_products')
    products = list_products(category=request.args.get('category'))
    return jsonify({"success": True, "data": [p.to_dict() for p in products]}), 200


@products_bp.route('/products/<product_id>', methods=['GET'])
def get_product_route(product_id):
    """
    Get a single product
    ---
    tags:
      - Products
    parameters:
      - name: product_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Product details
      404:
        description: Product not found
    """
    product = get_product(product_id)
    if not product:
        return _not_found(product_id)
    return jsonify({"success": True, "data": product.to_dict()}), 200


@products_bp.route('/products', methods=['POST'])
def create_product_route():
    """
    Create a product
    ---
    tags:
      - Products
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - name
            - price
          properties:
            name:
              type: string
            description:
              type: string
            price:
              type: number
            stock:
              type: integer
            category:
              type: string
            image_url:
              type: string
            expiry_date:
              type: string
              format: date
    responses:
      201:
        description: Product created
      400:
        description: Invalid product data
    """
    data = json_body()
    simulate_latency('create_product')
    product = create_product(data)
    return jsonify({"success": True, "data": product.to_dict()}), 201


@products_bp.route('/products/<product_id>/price', methods=['PATCH'])
def set_price_route(product_id):
    """
    Change a product's unit price
    ---
    tags:
      - Products
    parameters:
      - name: product_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - price
          properties:
            price:
              type: number
    responses:
      200:
        description: Price updated
      400:
        description: Invalid price
      404:
        description: Product not found
    """
    data = json_body()
    simulate_latency('set_price')
    if not set_price(product_id, data.get('price')):
        return _not_found(product_id)
    return jsonify({"success": True, "data": get_product(product_id).to_dict()}), 200


@products_bp.route('/products/<product_id>/stock', methods=['PATCH'])
def restock_route(product_id):
    """
    Reset a product's stock counter
    ---
    tags:
      - Products
    parameters:
      - name: product_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - stock
          properties:
            stock:
              type: integer
    responses:
      200:
        description: Stock updated
      400:
        description: Invalid stock figure
      404:
        description: Product not found
    """
    data = json_body()
    if not restock(product_id, data.get('stock')):
        return _not_found(product_id)
    return jsonify({"success": True, "data": get_product(product_id).to_dict()}), 200


@products_bp.route('/products/<product_id>', methods=['DELETE'])
def delete_product_route(product_id):
    """
    Delete a product
    ---
    tags:
      - Products
    parameters:
      - name: product_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Product deleted
      404:
        description: Product not found
    """
    simulate_latency('delete_product')
    if not delete_product(product_id):
        return _not_found(product_id)
    return jsonify({"success": True, "message": f"Product {product_id} deleted."}), 200


@products_bp.route('/products/description', methods=['POST'])
def generate_description_route():
    """
    Draft a marketing description for a product
    ---
    tags:
      - Products
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - name
          properties:
            name:
              type: string
            category:
              type: string
    responses:
      200:
        description: Generated (or placeholder) description
      400:
        description: Missing product name
    """
    data = json_body()
    name = text_field(data, 'name')
    if not name:
        return jsonify({"success": False, "error_code": "VALIDATION_ERROR", "message": "name is required"}), 400
    text = generate_description(name, text_field(data, 'category'))
    return jsonify({"success": True, "description": text}), 200
