"""
Trade Event Logger
Synchronous in-memory buffer, flushed to a daily JSON-lines file in the background
log() never awaits and never touches disk
"""

import asyncio
import json
import logging
import os
from collections import deque
from datetime import datetime
from typing import Dict, List, Optional

import pytz

from momentum_scalper import config

logger = logging.getLogger(__name__)


class TradeLogger:
    """Fire-and-forget trade event sink"""

    def __init__(self, params: Optional[Dict] = None):
        self.params = {**config.TRADE_LOG_CONFIG, **(params or {})}
        self.buffer = deque(maxlen=self.params['max_buffer_size'])
        self.enabled = self.params['enabled']
        self.events_logged = 0
        self.events_dropped = 0
        self._flush_task = None

    def log(self, event: Dict):
        if len(self.buffer) == self.buffer.maxlen:
            self.events_dropped += 1
        record = {'timestamp': datetime.now(pytz.UTC).isoformat(), **event}
        self.buffer.append(record)
        self.events_logged += 1

    def drain(self) -> List[Dict]:
        events = list(self.buffer)
        self.buffer.clear()
        return events

    def _log_path(self) -> str:
        date = datetime.now(pytz.UTC).strftime('%Y-%m-%d')
        return os.path.join(self.params['log_dir'], f"trades-{date}.jsonl")

    def _write(self, events: List[Dict]):
        os.makedirs(self.params['log_dir'], exist_ok=True)
        with open(self._log_path(), 'a') as f:
            for event in events:
                f.write(json.dumps(event, default=str) + '\n')

    async def flush(self):
        events = self.drain()
        if not events or not self.enabled:
            return
        try:
            await asyncio.to_thread(self._write, events)
        except OSError as e:
            logger.error(f"Failed to write {len(events)} trade events: {e}")

    async def _flush_loop(self):
        interval = self.params['flush_interval_seconds']
        while True:
            await asyncio.sleep(interval)
            await self.flush()

    def start(self):
        if self._flush_task is None:
            self._flush_task = asyncio.create_task(self._flush_loop())

    async def close(self):
        if self._flush_task:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            self._flush_task = None
        await self.flush()
        if self.events_dropped:
            logger.warning(f"Trade logger dropped {self.events_dropped} events (buffer full)")
