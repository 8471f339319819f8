"""Job store for quire.

Redis holds one serialized record per job plus four sorted-set indexes:
- ready: job ids awaiting dispatch, scored by priority
- scheduled: job ids awaiting a due time, scored by epoch ms
- completed / failed: terminal logs, scored by the time the outcome was recorded
"""

from quire.store.keys import INDEX_NAMES, IndexName, QueueKeys
from quire.store.redis import await_redis, close_redis, create_redis, ping_redis

__all__ = [
    "INDEX_NAMES",
    "IndexName",
    "QueueKeys",
    "await_redis",
    "close_redis",
    "create_redis",
    "ping_redis",
]
