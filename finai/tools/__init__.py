"""Agent tool implementations"""
from .alerts import post_alert_handler, read_alerts_handler
from .mock_transactions import read_mock_transactions_handler
from .product_search import search_product_alternatives_handler
from .recurring_payments import get_recurring_payments_handler
from .spending import analyze_products_handler, analyze_spending_handler

__all__ = [
    "read_mock_transactions_handler",
    "search_product_alternatives_handler",
    "post_alert_handler",
    "read_alerts_handler",
    "analyze_spending_handler",
    "analyze_products_handler",
    "get_recurring_payments_handler",
]
