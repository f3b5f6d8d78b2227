#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Per-report locks keyed by (ship_id, report_type).

Requests for the same key run one at a time across load -> mutate -> persist;
different keys never block each other.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, Optional

from .errors import ReportBusyError

logger = logging.getLogger(__name__)


class KeyedLockRegistry:
    """
    One lock per key, created on first use and dropped again once no caller
    holds or waits for it, so the registry only grows with live keys.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    def _checkout(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _checkin(self, key: Hashable) -> None:
        with self._guard:
            remaining = self._users.get(key, 0) - 1
            if remaining > 0:
                self._users[key] = remaining
            else:
                self._users.pop(key, None)
                self._locks.pop(key, None)

    @contextmanager
    def hold(self, key: Hashable, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the key's lock; ReportBusyError when not acquired within timeout."""
        lock = self._checkout(key)
        try:
            acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
            if not acquired:
                logger.warning(f"[LOCK] {key} busy after {timeout}s")
                raise ReportBusyError(key, timeout)
            logger.debug(f"[LOCK] Acquired {key}")
            try:
                yield
            finally:
                lock.release()
                logger.debug(f"[LOCK] Released {key}")
        finally:
            self._checkin(key)

    def is_locked(self, key: Hashable) -> bool:
        with self._guard:
            lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_DEFAULT_REGISTRY = KeyedLockRegistry()


def default_registry() -> KeyedLockRegistry:
    return _DEFAULT_REGISTRY
