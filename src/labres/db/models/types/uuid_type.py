from __future__ import annotations

import uuid

from sqlalchemy.types import CHAR
from sqlalchemy.types import TypeDecorator
from sqlalchemy.dialects import postgresql


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.types import TypeEngine

    _Base = TypeDecorator['SoftUUID']
else:
    _Base = TypeDecorator


class SoftUUID(uuid.UUID):
    """ Behaves just like the UUID class, but allows strings to be compared
    with it, so that SoftUUID('my-uuid') == 'my-uuid' equals True.

    """

    def __eq__(self, other: object) -> bool:

        if isinstance(other, str):
            return self.hex == other.replace('-', '').strip()

        if isinstance(other, uuid.UUID):
            return self.int == other.int

        return False

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)

    def __hash__(self) -> int:
        return hash(self.int)


class UUID(_Base):
    """ Platform-independent uuid type, returning SoftUUIDs.

    Uses the Postgres UUID type, otherwise a CHAR(32) with the hex value.

    """
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[object]:
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(postgresql.UUID(as_uuid=False))
        return dialect.type_descriptor(CHAR(32))

    def process_bind_param(
        self,
        value: uuid.UUID | str | None,
        dialect: Dialect
    ) -> str | None:

        if value is None:
            return None

        if not isinstance(value, uuid.UUID):
            value = uuid.UUID(value)

        if dialect.name == 'postgresql':
            return str(value)
        return value.hex

    def process_result_value(
        self,
        value: object | None,
        dialect: Dialect
    ) -> SoftUUID | None:

        if value is None:
            return None

        # psycopg2 may already hand out uuid instances
        if isinstance(value, uuid.UUID):
            return SoftUUID(int=value.int)

        return SoftUUID(hex=str(value))
