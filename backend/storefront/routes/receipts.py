# Overview: Serves rendered receipt files.

from flask import Blueprint, send_from_directory

from ..services.receipt_service import receipts_dir

receipts_bp = Blueprint("receipts", __name__, url_prefix="/facturas")


@receipts_bp.get("/<path:filename>")
def get_receipt(filename: str):
    return send_from_directory(receipts_dir(), filename, mimetype="application/pdf")
