from labres.db.models.base import ORMBase
from labres.db.models.resource import Resource
from labres.db.models.reservation import Reservation


__all__ = (
    'ORMBase',
    'Resource',
    'Reservation',
)
