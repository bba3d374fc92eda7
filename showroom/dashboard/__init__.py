"""Admin dashboard: controller, inventory and inbox management, summary statistics."""

from showroom.dashboard.cars import CarForm, CarManager, parse_car_form
from showroom.dashboard.controller import AdminController
from showroom.dashboard.messages import MessageInbox
from showroom.dashboard.stats import (
    CHART_RANGES,
    DashboardStats,
    chart_start_date,
    compute_inventory_stats,
    fetch_chart_data,
    fetch_dashboard_stats,
)

__all__ = [
    "AdminController",
    "CHART_RANGES",
    "CarForm",
    "CarManager",
    "DashboardStats",
    "MessageInbox",
    "chart_start_date",
    "compute_inventory_stats",
    "fetch_chart_data",
    "fetch_dashboard_stats",
    "parse_car_form",
]
