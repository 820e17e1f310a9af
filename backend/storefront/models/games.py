from __future__ import annotations

from ..extensions import db


class Game(db.Model):
    """Game-store catalog entry."""
    __tablename__ = "games"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.String(64), nullable=False, unique=True)
    title = db.Column(db.String(255), nullable=False)
    image = db.Column(db.String(512), nullable=False)
    description = db.Column(db.Text, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "title": self.title,
            "image": self.image,
            "description": self.description,
            "price_cents": self.price_cents,
        }
