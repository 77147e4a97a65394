from .processor import reprocess_pending
from .queue import DeadLetterQueue, describe_error

__all__ = ["DeadLetterQueue", "describe_error", "reprocess_pending"]
