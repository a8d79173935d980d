import logging
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Farm

logger = logging.getLogger(__name__)


class FarmDirectory(Protocol):
    """Read-only view of the farm registry consulted on batch creation."""

    def is_farm_active(self, farm_id: int) -> bool: ...


class SqlFarmDirectory:
    """Looks farms up in the ``farms`` table. Unknown farms are reported as not active."""

    def __init__(self, db: Session):
        self.db = db

    def is_farm_active(self, farm_id: int) -> bool:
        try:
            farm = self.db.get(Farm, farm_id)
        except SQLAlchemyError:
            logger.warning("farm directory lookup failed for farm %s", farm_id, exc_info=True)
            return False
        return bool(farm and farm.active)


def seed_demo_farms(db: Session) -> list:
    """Register farm 1 (active) and farm 2 (inactive) when missing."""
    created = []
    for farm_id, name, active in ((1, "Orchard X", True), (2, "Retired Plot", False)):
        if db.get(Farm, farm_id) is None:
            db.add(Farm(id=farm_id, name=name, active=active))
            created.append(farm_id)
    db.commit()
    return created
