"""
LRU Cache implementation for Synapse Memory System
Copyright 2025 Jurden Bruce
"""

import threading
from collections import OrderedDict


class LRUCache(OrderedDict):
    """LRU cache with max size, safe to share between request handlers"""
    def __init__(self, maxsize=1000):
        self.maxsize = maxsize
        self._lock = threading.RLock()
        super().__init__()

    def __setitem__(self, key, value):
        with self._lock:
            if key in self:
                self.move_to_end(key)
            super().__setitem__(key, value)
            if len(self) > self.maxsize:
                oldest = next(iter(self))
                del self[oldest]

    def __getitem__(self, key):
        with self._lock:
            value = super().__getitem__(key)
            self.move_to_end(key)
            return value

    def get(self, key, default=None):
        with self._lock:
            if key not in self:
                return default
            return self[key]
