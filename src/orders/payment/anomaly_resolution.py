"""Operator resolution of reconciliation anomalies."""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.payment.anomaly import ReconciliationAnomaly
from orders.review.auth import AuthContext, Permission


@orders.command(part_of="ReconciliationAnomaly")
class ResolveAnomaly:
    anomaly_id = Identifier(required=True)
    resolution_notes = Text(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@orders.command_handler(part_of=ReconciliationAnomaly)
class ResolveAnomalyHandler:
    @handle(ResolveAnomaly)
    def resolve(self, command):
        AuthContext.for_role(command.actor_id, command.actor_role).require(
            Permission.RESOLVE_ANOMALY, "resolve payment anomalies"
        )
        repo = current_domain.repository_for(ReconciliationAnomaly)
        anomaly = repo.get(command.anomaly_id)
        anomaly.resolve(resolved_by=command.actor_id, resolution_notes=command.resolution_notes)
        repo.add(anomaly)
