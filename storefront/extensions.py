import threading

from flask_jwt_extended import JWTManager
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
jwt = JWTManager()

# Revoked token ids (in-memory, process wide)
BLOCKLIST = set()

# Serializes every write to products and orders
store_lock = threading.RLock()
