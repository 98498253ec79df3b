from __future__ import annotations

from datetime import datetime
from sqlalchemy import MetaData
from sqlalchemy.orm import registry
from sqlalchemy.orm import DeclarativeBase
from uuid import UUID as PythonUUID

from .types import JSON
from .types import UTCDateTime
from .types import UUID


from typing import Any


class ORMBase(DeclarativeBase):
    """ Base of all labres models. Python types used in ``Mapped[...]``
    annotations map to the labres column types.

    """

    metadata = MetaData(naming_convention={
        'ix': '%(table_name)s_%(column_0_name)s_ix',
        'uq': '%(table_name)s_%(column_0_name)s_uq',
        'ck': '%(table_name)s_%(constraint_name)s_ck',
        'pk': '%(table_name)s_pk',
    })

    registry = registry(type_annotation_map={
        datetime: UTCDateTime(timezone=False),
        dict[str, Any]: JSON,
        PythonUUID: UUID,
    })
