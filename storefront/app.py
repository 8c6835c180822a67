"""
Storefront Service — Flask application
Catalog, OTP login and inventory-consistent checkout.
"""

import logging
import os
from datetime import datetime, timedelta, timezone

from dotenv import load_dotenv
from flasgger import Swagger
from flask import Flask, jsonify
from sqlalchemy import text

from storefront.errors import StorefrontError
from storefront.extensions import BLOCKLIST, db, jwt
from storefront.services.catalog_service import seed_catalog
from storefront.services.otp_service import OtpSessionManager, make_channel

load_dotenv()

logger = logging.getLogger(__name__)


def _env_flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_float(name):
    value = os.getenv(name)
    return float(value) if value else None


def create_app(test_config=None):
    app = Flask(__name__)

    # Configuration
    app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv('DATABASE_URL', 'sqlite:///storefront.db')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET', 'dev-secret-change-me')
    app.config['OWNER_PHONE_NUMBER'] = os.getenv('OWNER_PHONE_NUMBER', '9999999999')
    app.config['OTP_CHANNEL'] = os.getenv('OTP_CHANNEL', 'demo')
    app.config['OTP_TTL_SECONDS'] = _env_float('OTP_TTL_SECONDS')
    app.config['STORE_LOCK_TIMEOUT'] = _env_float('STORE_LOCK_TIMEOUT')
    app.config['SIMULATED_LATENCY'] = _env_flag('SIMULATED_LATENCY', False)
    app.config['SEED_CATALOG'] = _env_flag('SEED_CATALOG', True)
    app.config['GEMINI_API_KEY'] = os.getenv('GEMINI_API_KEY') or os.getenv('API_KEY')
    app.config['GEMINI_MODEL'] = os.getenv('GEMINI_MODEL', 'gemini-1.5-flash')

    if test_config:
        app.config.update(test_config)

    # Initialize Extensions
    db.init_app(app)
    jwt.init_app(app)

    @jwt.token_in_blocklist_loader
    def check_if_token_in_blocklist(jwt_header, jwt_payload):
        return jwt_payload['jti'] in BLOCKLIST

    ttl = app.config['OTP_TTL_SECONDS']
    app.extensions['otp_sessions'] = OtpSessionManager(ttl=timedelta(seconds=ttl) if ttl else None)
    app.extensions['otp_channel'] = make_channel(app.config['OTP_CHANNEL'])
    if app.config['OTP_CHANNEL'] == 'demo':
        logger.warning("OTP_CHANNEL=demo returns login codes in API responses; do not use in production")

    Swagger(app)

    # Register Blueprints
    from storefront.routes import auth_bp, checkout_bp, products_bp
    app.register_blueprint(products_bp, url_prefix='/api')
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(checkout_bp, url_prefix='/api')

    @app.errorhandler(StorefrontError)
    def handle_storefront_error(e):
        return jsonify({
            "success": False,
            "error_code": e.error_code,
            "message": str(e)
        }), e.status_code

    @app.route('/health')
    def health():
        try:
            db.session.execute(text('SELECT 1'))
            return jsonify({
                "service": "storefront-service",
                "status": "healthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }), 200
        except Exception as e:
            return jsonify({"service": "storefront-service", "status": "unhealthy", "error": str(e)}), 503

    with app.app_context():
        import storefront.models  # noqa: F401  (register tables)
        db.create_all()
        if app.config['SEED_CATALOG']:
            seed_catalog()

    return app


def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    app = create_app()
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', '5000')), threaded=True)


if __name__ == '__main__':
    main()
