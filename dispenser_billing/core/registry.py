"""
Dispenser registry.

Owns the set of registered dispensers and their fixed flow rates.
"""

import logging
import math
import uuid
from decimal import Decimal
from typing import Any, Callable, List, Optional

from .errors import NotFoundError, ValidationError
from dispenser_billing.storage.models import Dispenser
from dispenser_billing.storage.repository import DispenserRepository

logger = logging.getLogger(__name__)


def new_dispenser_id() -> str:
    return str(uuid.uuid4())


def validate_flow_volume(flow_volume: Any) -> float:
    """Check a flow volume is a finite number greater than zero.

    Raises:
        ValidationError: If the value is missing, non-numeric, non-finite or <= 0
    """
    if flow_volume is None:
        raise ValidationError('Invalid request. The "flowVolume" property is missing.')
    # bool is an int subclass but never a valid rate
    if isinstance(flow_volume, bool) or not isinstance(flow_volume, (int, float, Decimal)):
        raise ValidationError('Invalid request. "flowVolume" must be a number.')
    try:
        value = float(flow_volume)
    except (OverflowError, ValueError):
        raise ValidationError('Invalid request. "flowVolume" must be a finite number.')
    if not math.isfinite(value) or value <= 0:
        raise ValidationError('Invalid request. "flowVolume" must be greater than 0.')
    return value


class DispenserRegistry:
    """Registers dispensers and looks them up by id."""

    def __init__(
        self,
        repository: DispenserRepository,
        id_factory: Callable[[], str] = new_dispenser_id,
    ):
        self.repository = repository
        self._id_factory = id_factory

    def register(self, flow_volume: Any) -> Dispenser:
        """Register a new dispenser with a fixed flow rate.

        Args:
            flow_volume: Volume dispensed per second while the tap is open

        Returns:
            The stored dispenser with its freshly allocated id

        Raises:
            ValidationError: If flow_volume is not a positive number
        """
        dispenser = Dispenser(id=self._id_factory(), flow_volume=validate_flow_volume(flow_volume))
        self.repository.create(dispenser)
        logger.info(
            "Registered dispenser %s (flow_volume=%s)", dispenser.id, dispenser.flow_volume,
            extra={"dispenser_id": dispenser.id},
        )
        return dispenser

    def lookup(self, dispenser_id: str) -> Optional[Dispenser]:
        return self.repository.get_by_id(dispenser_id)

    def require(self, dispenser_id: str) -> Dispenser:
        """Look up a dispenser, raising NotFoundError when it is unknown."""
        dispenser = self.lookup(dispenser_id)
        if dispenser is None:
            raise NotFoundError("Dispenser not found")
        return dispenser

    def list_all(self) -> List[Dispenser]:
        return self.repository.list_all()
