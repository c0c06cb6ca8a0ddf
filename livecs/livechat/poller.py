"""Polling loop that drives ``ConversationEngine`` from LiveChat.

One asyncio task per chat per tick. Blocking HTTP calls and the engine turn
run in worker threads so a slow chat never holds up the others.
"""
import asyncio
import threading
import time
from typing import Any, Callable, Dict, Optional, Set, Tuple

from ..convo import detectors
from ..convo.memory_store import STATE_MAX_AGE

STALE_MESSAGE_SLACK = 5.0
MAX_PROCESSED_IDS = 1000
FULL_SWEEP_EVERY = 2 * 60 * 60
FAST_SWEEP_EVERY = 30 * 60


class ChatPoller:
    def __init__(self, engine, client, interval: float = 5.0, min_response_gap: float = 7.0,
                 turn_timeout: float = 30.0, call_timeout: float = 30.0,
                 clock: Callable[[], float] = time.time, payment=None, debug: bool = False):
        self.engine = engine
        self.client = client
        self.payment = payment
        self.interval = interval
        self.min_response_gap = min_response_gap
        self.turn_timeout = turn_timeout
        self.call_timeout = call_timeout
        self.clock = clock
        self.debug = debug

        self._lock = threading.Lock()
        self._active: Set[str] = set()
        self._in_worker: Set[str] = set()
        self._processed: Set[str] = set()
        self._shutdown: Optional[asyncio.Event] = None
        self._last_full_sweep = clock()
        self._last_fast_sweep = clock()

    # Shared maps
    def is_processed(self, message_id: str) -> bool:
        with self._lock:
            return message_id in self._processed

    def mark_processed(self, message_id: str) -> None:
        with self._lock:
            if len(self._processed) > MAX_PROCESSED_IDS:
                print(f"[POLL] 🧹 Clearing {len(self._processed)} processed message ids")
                self._processed.clear()
            self._processed.add(message_id)

    def _acquire(self, chat_id: str) -> bool:
        with self._lock:
            if chat_id in self._active:
                return False
            self._active.add(chat_id)
            return True

    def _release(self, chat_id: str) -> None:
        with self._lock:
            self._in_worker.discard(chat_id)
            self._active.discard(chat_id)

    def _release_unless_in_worker(self, chat_id: str) -> None:
        with self._lock:
            if chat_id not in self._in_worker:
                self._active.discard(chat_id)

    async def _call(self, fn, *args, timeout: Optional[float] = None, **kwargs):
        return await asyncio.wait_for(asyncio.to_thread(fn, *args, **kwargs),
                                      timeout=timeout or self.call_timeout)

    async def _run_turn(self, chat_id: str, text: str, message_id: str) -> Tuple[bool, Optional[str]]:
        """Run ``handle_turn`` in a worker thread that owns the chat until it returns.

        On timeout the worker is left running and keeps the chat locked; the
        result is ``(False, None)``.
        """
        def work():
            try:
                return self.engine.handle_turn(chat_id, text, message_id, follow_up=True)
            finally:
                self._release(chat_id)

        with self._lock:
            self._in_worker.add(chat_id)
        future = asyncio.get_running_loop().run_in_executor(None, work)
        done, _ = await asyncio.wait({future}, timeout=self.turn_timeout)
        if not done:
            print(f"[POLL] ⌛ Turn for chat {chat_id} still running after {self.turn_timeout}s, chat stays locked")
            return False, None
        return True, future.result()

    @property
    def stopping(self) -> bool:
        return self._shutdown is not None and self._shutdown.is_set()

    # Filtering
    async def should_respond(self, chat_id: str, message: Dict[str, Any]) -> bool:
        message_id = message.get("messageId") or message.get("id")
        state = self.engine.store.get_or_create(chat_id)

        if message_id and (self.is_processed(message_id) or state.last_processed_message_id == message_id):
            if self.debug:
                print(f"[POLL] 🚫 Skipping already processed message {message_id} in chat {chat_id}")
            return False

        created = message.get("created_ts")
        if created is None:
            created = self.clock()
        if state.last_response_time and created <= state.last_response_time - STALE_MESSAGE_SLACK:
            if self.debug:
                print(f"[POLL] 🚫 Skipping old message in chat {chat_id}")
            return False

        last = self.engine.store.last_response_at(chat_id)
        if last is not None and self.clock() - last < self.min_response_gap:
            if self.debug:
                print(f"[POLL] ⏰ Skipping response to {chat_id} - too recent")
            return False

        if await self._call(self.client.is_archived, chat_id):
            print(f"[POLL] 📁 Skipping archived chat {chat_id}")
            return False
        return True

    # Per chat
    async def process_chat(self, chat: Dict[str, Any]) -> Optional[str]:
        chat_id = chat.get("id")
        if not chat_id:
            return None
        if not self._acquire(chat_id):
            if self.debug:
                print(f"[POLL] ⏳ Skipping re-entrant processing for chat {chat_id}")
            return None
        try:
            return await self._process_locked(chat_id)
        except Exception as e:
            print(f"[POLL] ❌ Error processing chat {chat_id}: {e}")
            return None
        finally:
            self._release_unless_in_worker(chat_id)

    async def _process_locked(self, chat_id: str) -> Optional[str]:
        state = self.engine.store.get_or_create(chat_id)
        latest = await self._call(self.client.get_latest_customer_message, chat_id)

        if not state.has_sent_welcome and (latest is None or latest.get("author_type", "customer") != "customer"):
            if self.stopping:
                return None
            sent = await self._call(self.engine.send_welcome, chat_id)
            if sent:
                self.engine.store.record_response(chat_id, self.clock())
                print(f"[POLL] 📨 Sent welcome to {chat_id}")
                return sent

        if latest is None:
            return None
        if not await self.should_respond(chat_id, latest):
            return None

        message_id = latest.get("messageId") or f"{chat_id}_{int(self.clock() * 1000)}"
        text = latest.get("text") or ""
        if detectors.is_transfer_system_message(text):
            print(f"[POLL] 🤖 Skipping transfer-to-agent message in chat {chat_id}: \"{text[:50]}...\"")
            self.mark_processed(message_id)
            return None
        if detectors.looks_like_bot_text(text) or detectors.is_bot_author(latest.get("author_id")):
            self.mark_processed(message_id)
            return None

        if self.stopping:
            return None
        print(f"[POLL] 🔄 Processing: \"{text}\" in chat {chat_id}")
        finished, reply = await self._run_turn(chat_id, text, message_id)

        self.mark_processed(message_id)
        if not finished:
            return None
        state.last_processed_message_id = message_id
        self.engine.store.record_response(chat_id, self.clock())
        if reply:
            print(f"[POLL] ✅ Response sent to {chat_id}: \"{reply[:50]}...\"")
        elif self.debug:
            print(f"[POLL] ℹ️ No message sent to {chat_id}")
        return reply

    # Loop
    async def tick(self) -> int:
        chats = await self._call(self.client.list_active_conversations)
        if not chats:
            return 0
        await asyncio.gather(*(self.process_chat(c) for c in chats))
        return len(chats)

    def maintenance(self) -> None:
        now = self.clock()
        store = self.engine.store
        if now - self._last_full_sweep >= FULL_SWEEP_EVERY:
            self._last_full_sweep = now
            self._last_fast_sweep = now
            store.sweep()
            if self.payment is not None:
                self.payment.evict_older_than(STATE_MAX_AGE)
        elif now - self._last_fast_sweep >= FAST_SWEEP_EVERY:
            self._last_fast_sweep = now
            store.fast_sweep()

    async def run(self) -> None:
        self._shutdown = asyncio.Event()
        print(f"[POLL] 🚀 Polling LiveChat every {self.interval}s")
        while not self._shutdown.is_set():
            try:
                await self.tick()
            except Exception as e:
                print(f"[POLL] ❌ Tick failed: {e}")
            self.maintenance()
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
        self.engine.store.shutdown()
        print("[POLL] 👋 Poller stopped")

    def stop(self) -> None:
        if self._shutdown is not None:
            self._shutdown.set()
