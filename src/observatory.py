"""Threadworks Observatory — real-time message flow observability.

Uses Protean's built-in Observatory server to provide a live dashboard,
Prometheus metrics, and REST API for monitoring the orders event pipeline:
transitions, reconciliation and notification fan-out.

Usage:
    uvicorn src.observatory:app --host 0.0.0.0 --port 9000
"""

from protean.server.observatory import create_observatory_app

from orders.domain import orders

orders.init()

app = create_observatory_app(
    domains=[orders],
    title="Threadworks Observatory",
)
