from flask import Blueprint, jsonify
from flask_jwt_extended import create_access_token, get_jwt, jwt_required
import datetime

from storefront.errors import AuthFailure, ValidationError
from storefront.extensions import BLOCKLIST
from storefront.routes.helpers import json_body, text_field
from storefront.services.identity_service import request_code, verify_code

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/request-code', methods=['POST'])
def request_code_route():
    """
    Send a login code to a phone number
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - phone_number
          properties:
            phone_number:
              type: string
    responses:
      200:
        description: Code issued (returned in the body only on the demo channel)
      400:
        description: Missing phone number
    """
    data = json_body()
    phone_number = text_field(data, 'phone_number')
    if not phone_number:
        return jsonify({'error': 'Missing phone_number'}), 400

    code = request_code(phone_number)
    body = {'message': 'OTP sent successfully'}
    if code is not None:
        body['otp'] = code
    return jsonify(body), 200


@auth_bp.route('/verify', methods=['POST'])
def verify_route():
    """
    Verify a login code and get an access token
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - phone_number
            - otp_code
          properties:
            phone_number:
              type: string
            otp_code:
              type: string
    responses:
      200:
        description: Login successful
      400:
        description: Missing fields
      401:
        description: Invalid or already used code
    """
    data = json_body()
    phone_number = text_field(data, 'phone_number')
    otp_code = data.get('otp_code')
    if isinstance(otp_code, bool) or not isinstance(otp_code, (str, int, type(None))):
        raise ValidationError('otp_code must be a string')

    if not phone_number or otp_code is None:
        return jsonify({'error': 'Missing phone_number or otp_code'}), 400

    identity = verify_code(phone_number, otp_code)
    if identity is None:
        raise AuthFailure('Invalid OTP code')

    access_token = create_access_token(
        identity=identity.id,
        additional_claims={'role': identity.role.value, 'phone_number': identity.phone_number},
        expires_delta=datetime.timedelta(hours=12),
    )
    return jsonify({
        'message': 'Login successful',
        'access_token': access_token,
        'user': identity.to_dict()
    }), 200


@auth_bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    """
    Logout user (Revoke token)
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logout successful
    """
    BLOCKLIST.add(get_jwt()['jti'])
    return jsonify({'message': 'Logout successful'}), 200
