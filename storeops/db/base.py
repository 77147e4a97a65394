# Import all the models, so that Base has them before being
# imported by Alembic
from storeops.db.base_class import Base
from storeops.models.dead_letter import DeadLetterRecord

__all__ = ["Base", "DeadLetterRecord"]  # noqa: F401
