from labres.db.models.types.json_type import JSON
from labres.db.models.types.utcdatetime import UTCDateTime
from labres.db.models.types.uuid_type import UUID


__all__ = (
    'JSON',
    'UTCDateTime',
    'UUID',
)
