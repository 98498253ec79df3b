from __future__ import annotations

import sedate

from datetime import datetime
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import Mapped


def timestamp() -> datetime:
    return sedate.utcnow()


class TimestampMixin:
    """ Mixin providing created/modified timestamps for all records.

    The columns are deferred, they are only of interest when auditing what
    happened to a record (for example, when a reservation was cancelled).

    """

    created: Mapped[datetime | None] = mapped_column(
        default=timestamp,
        deferred=True
    )

    modified: Mapped[datetime | None] = mapped_column(
        onupdate=timestamp,
        deferred=True
    )
