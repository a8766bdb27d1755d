# SQLModel definitions: imported here to ensure metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .charity import Charity  # noqa: F401
from .transaction import Transaction  # noqa: F401
