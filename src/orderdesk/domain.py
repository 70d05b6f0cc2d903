"""OrderDesk bounded context: fulfillment order operations.

Governs how channel orders move from OPEN to shipped: holds and releases,
the 3PL request/cancellation handshake, tracking, warehouse location moves
and the audit trail every change leaves behind. Uses CQRS because the
order record is the source of truth and the audit trail lives inside it.
"""

from protean.domain import Domain

orderdesk = Domain(name="orderdesk")
