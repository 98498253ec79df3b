from __future__ import annotations

from uuid import UUID

from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import Mapped
from sqlalchemy.schema import UniqueConstraint

from labres.db.models.base import ORMBase
from labres.db.models.timestamp import TimestampMixin


from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing_extensions import TypeAlias


ResourceState: TypeAlias = Literal['available', 'maintenance', 'unavailable']
RESOURCE_STATES: tuple[ResourceState, ...] = (
    'available', 'maintenance', 'unavailable'
)


class Resource(TimestampMixin, ORMBase):
    """Describes a bookable machine.

    Resources are managed outside of the scheduler. The scheduler only reads
    their state: only ``available`` resources can be booked. Changing the
    state does not touch existing reservations.

    """

    __tablename__ = 'resources'

    #: the uuid of the resource, derived from context and name
    id: Mapped[UUID] = mapped_column(primary_key=True)

    #: the context the resource belongs to
    context: Mapped[str] = mapped_column(types.String(255))

    #: the display name, unique within the context
    name: Mapped[str] = mapped_column(types.String(255))

    state: Mapped[ResourceState] = mapped_column(
        types.Enum(*RESOURCE_STATES, name='resource_state'),
        default='available'
    )

    #: resources are listed in this order (followed by the name)
    display_order: Mapped[int] = mapped_column(default=0)

    __table_args__ = (
        UniqueConstraint('context', 'name'),
    )

    def __init__(self) -> None:
        # NOTE: Avoid auto-generated __init__, the mypy plugin is
        #       deprecated and cannot be used with newer versions.
        pass

    def __repr__(self) -> str:
        return f'<Resource {self.name} ({self.state})>'

    @property
    def is_available(self) -> bool:
        return self.state == 'available'
