from swiftdrop.services.orders.cancellation import Canceller
from swiftdrop.services.orders.coordinator import OrderCoordinator
from swiftdrop.services.orders.transaction import OrderTx

__all__ = ["Canceller", "OrderCoordinator", "OrderTx"]
