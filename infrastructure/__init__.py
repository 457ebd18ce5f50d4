"""
Infrastructure Package.

Adapters between the orchestrator and external systems:

    blob.py             IBlobRepository, BlobRepository (azure-storage-blob)
    job_store.py        JobMetadataStore (job records, markers, outputs)
    queue_topology.py   QueueTopologyManager (aio-pika declarations)
    broker.py           BrokerConnection (aio-pika connection + publisher)

Nothing here reads the environment or builds clients at import time;
the process entry point constructs instances from config and passes
them down.
"""

from .blob import IBlobRepository, BlobRepository
from .job_store import JobMetadataStore
from .queue_topology import QueueTopologyManager
from .broker import BrokerConnection

__all__ = [
    'IBlobRepository',
    'BlobRepository',
    'JobMetadataStore',
    'QueueTopologyManager',
    'BrokerConnection',
]
