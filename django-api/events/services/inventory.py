"""Advisory capacity check run before any money is requested.

This check reads sold counts without locking, so two checkouts can both
pass it. The authoritative check happens again under lock when tickets
are minted (see `PaymentStore.complete_payment`); this one exists to
reject early with a useful message.
"""

from collections import Counter
from collections.abc import Iterable

from events.domain import LineItem, TicketType
from events.domain.errors import InsufficientInventoryError
from events.stores.interfaces import EventStore


class InventoryGuard:
    def __init__(self, store: EventStore) -> None:
        self._store = store

    def ensure_available(
        self, ticket_types: Iterable[TicketType], line_items: Iterable[LineItem]
    ) -> None:
        """Raise InsufficientInventoryError for the first type that would oversell.

        Quantities for the same ticket type across line items are summed.
        """
        by_id = {str(tt.id): tt for tt in ticket_types}
        requested: Counter[str] = Counter()
        for item in line_items:
            requested[item.ticket_type_id] += item.quantity

        for ticket_type_id, quantity in requested.items():
            ticket_type = by_id[ticket_type_id]
            if ticket_type.is_unlimited:
                continue
            sold = self._store.count_sold(ticket_type.id)
            if not ticket_type.can_admit(sold, quantity):
                raise InsufficientInventoryError(ticket_type.name)
