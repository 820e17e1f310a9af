# Overview: Flask API routes for reports and the dashboard; read-only.

from flask import Blueprint, request

from ..services import reporting_service
from ..services.reporting_service import GROUPING_DAY
from ..validation import parse_day_param, parse_int, parse_range_params, ValidationError
from storefront.time_utils import local_today

reports_bp = Blueprint("reports", __name__)


@reports_bp.get("/reportes")
def day_report_route():
    """Combined feed (sales + unrepresented payments) for fecha, newest first. Defaults to today."""
    try:
        day = parse_day_param("fecha", request.args.get("fecha")) or local_today()
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"fecha": day.isoformat(), "items": reporting_service.day_feed(day)}


@reports_bp.get("/reportes/graficos")
def chart_feed_route():
    """Combined feed for desde..hasta, oldest first."""
    try:
        start, end = parse_range_params(request.args.get("desde"), request.args.get("hasta"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"items": reporting_service.combined_feed(start, end, ascending=True)}


@reports_bp.get("/reportes/top-productos")
def top_products_route():
    """Query: agrupacion=dia|semana|mes (default dia), limite (default 10)."""
    try:
        grouping = request.args.get("agrupacion") or GROUPING_DAY
        limit = parse_int("limite", request.args.get("limite", "10"), minimum=1)
        items = reporting_service.top_products(grouping, limit)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"agrupacion": grouping, "items": items}


@reports_bp.get("/reportes/lineas")
def category_share_route():
    try:
        start, end = parse_range_params(request.args.get("desde"), request.args.get("hasta"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"items": reporting_service.category_share(start, end)}


@reports_bp.get("/reportes/periodos")
def period_totals_route():
    try:
        start, end = parse_range_params(request.args.get("desde"), request.args.get("hasta"))
        grouping = request.args.get("agrupacion") or GROUPING_DAY
        items = reporting_service.period_totals(start, end, grouping)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"agrupacion": grouping, "items": items}


@reports_bp.get("/dashboard-datos")
def dashboard_route():
    try:
        start, end = parse_range_params(request.args.get("desde"), request.args.get("hasta"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    return reporting_service.dashboard_summary(start, end)
