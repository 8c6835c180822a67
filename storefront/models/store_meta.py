from storefront.extensions import db


class StoreMeta(db.Model):
    """Key/value markers about the store itself (e.g. whether the demo catalog was loaded)."""
    __tablename__ = 'store_meta'

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
