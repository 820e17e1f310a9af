# Overview: Flask API route for the game-store catalog.

from flask import Blueprint, jsonify

from ..services import game_service

games_bp = Blueprint("games", __name__, url_prefix="/api/juegos")


@games_bp.get("")
def list_games_route():
    return jsonify([game.to_dict() for game in game_service.list_games()])
