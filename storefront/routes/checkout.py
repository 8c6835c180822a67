from flask import Blueprint, jsonify
from flask_jwt_extended import get_jwt_identity, jwt_required

from storefront.routes.helpers import json_body
from storefront.services.checkout_service import checkout, get_order, list_orders, parse_lines

checkout_bp = Blueprint('checkout', __name__)


@checkout_bp.route('/checkout', methods=['POST'])
@jwt_required()
def checkout_route():
    """
    Place an order for the submitted cart
    ---
    tags:
      - Checkout
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - lines
          properties:
            lines:
              type: array
              items:
                type: object
                required:
                  - product_id
                  - quantity
                  - unit_price
                properties:
                  product_id:
                    type: string
                  quantity:
                    type: integer
                  unit_price:
                    type: number
    responses:
      201:
        description: Order placed
      400:
        description: Malformed cart
      409:
        description: One or more lines unavailable; nothing was purchased
    """
    data = json_body()
    lines = parse_lines(data.get('lines'))

    result = checkout(get_jwt_identity(), lines)
    return jsonify(result.to_dict()), 201 if result.success else 409


@checkout_bp.route('/orders', methods=['GET'])
@jwt_required()
def list_orders_route():
    """
    List the caller's orders, newest first
    ---
    tags:
      - Checkout
    security:
      - Bearer: []
    responses:
      200:
        description: Orders
    """
    orders = list_orders(get_jwt_identity())
    return jsonify({"success": True, "data": [o.to_dict() for o in orders]}), 200


@checkout_bp.route('/orders/<order_id>', methods=['GET'])
@jwt_required()
def get_order_route(order_id):
    """
    Get one of the caller's orders
    ---
    tags:
      - Checkout
    security:
      - Bearer: []
    parameters:
      - name: order_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Order details
      404:
        description: Order not found
    """
    order = get_order(order_id, user_id=get_jwt_identity())
    return jsonify({"success": True, "data": order.to_dict()}), 200
