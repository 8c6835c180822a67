import time

from flask import current_app

# Per-operation delays (seconds) of the simulated backend
LATENCY = {
    'request_code': 0.3,
    'verify_code': 0.5,
    'list_products': 0.4,
    'create_product': 0.6,
    'set_price': 0.3,
    'delete_product': 0.3,
    'checkout': 1.5,
}


def simulate_latency(operation):
    """Sleep for the operation's simulated network/processing time when SIMULATED_LATENCY is on."""
    if current_app.config.get('SIMULATED_LATENCY'):
        time.sleep(LATENCY.get(operation, 0.0))
