# Overview: Game-store catalog listing and bulk seeding.

from __future__ import annotations

from ..extensions import db
from ..models import Game
from ..validation import ValidationError, parse_cents

GAME_FIELDS = {"product_id", "title", "image", "description", "price_cents"}


def list_games() -> list[Game]:
    return db.session.query(Game).order_by(Game.id.asc()).all()


def upsert_games(rows: list[dict]) -> tuple[int, int]:
    """
    Insert or update games keyed by product_id.

    Returns (created, updated). Nothing is written if any row is invalid.
    """
    created = updated = 0
    try:
        for index, row in enumerate(rows):
            missing = sorted(f for f in GAME_FIELDS if row.get(f) in (None, ""))
            if missing:
                raise ValidationError(f"games[{index}] missing fields: {', '.join(missing)}")
            values = {f: row[f] for f in GAME_FIELDS}
            values["product_id"] = str(values["product_id"]).strip()
            values["price_cents"] = parse_cents(f"games[{index}].price_cents", values["price_cents"])

            game = db.session.query(Game).filter_by(product_id=values["product_id"]).first()
            if game is None:
                db.session.add(Game(**values))
                created += 1
            else:
                for k, v in values.items():
                    setattr(game, k, v)
                updated += 1
    except ValidationError:
        db.session.rollback()
        raise

    db.session.commit()
    return created, updated
