"""Queue sources and the worker loop."""

from .azure import AzureQueueSource
from .sqs import SqsQueueSource
from .worker import QueueWorker

__all__ = ["AzureQueueSource", "SqsQueueSource", "QueueWorker"]
