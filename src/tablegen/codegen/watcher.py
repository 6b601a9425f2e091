"""Filesystem watch mode with debouncing.

Uses watchdog to monitor model sources. Every debounced batch of changes
triggers a complete new round: the schema is rebuilt from the full candidate
set, never patched, since a change in one file can reclassify entities
declared in another.
"""
from __future__ import annotations
from pathlib import Path
from typing import Callable, Literal
import asyncio
import logging
import time

from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler, FileSystemEvent

from ..config import CodegenConfig
from .processor import RoundResult, generate_from_sources

logger = logging.getLogger(__name__)


class SourceWatcher:
    """Filesystem watcher that regenerates on debounced source changes."""

    def __init__(
        self,
        config: CodegenConfig,
        source_roots: list[Path],
        debounce_ms: int = 500,
        on_round: Callable[[RoundResult], None] | None = None,
    ):
        """Initialize watcher.

        Args:
            config: Generator configuration
            source_roots: Directories to watch and scan
            debounce_ms: Debounce delay in milliseconds (default 500)
            on_round: Called with the result of every round
        """
        self.config = config
        self.source_roots = [root.resolve() for root in source_roots]
        self.debounce_ms = debounce_ms
        self.on_round = on_round

        # Event queue: maps absolute path to (operation, timestamp)
        self.event_queue: dict[Path, tuple[str, float]] = {}
        self.queue_lock = asyncio.Lock()

        self.output_dir = Path(config.output_dir).resolve()
        self.ignore_dirs = {
            ".git", ".venv", "venv", "node_modules", "__pycache__",
            ".pytest_cache", "dist", "build", ".tox", ".mypy_cache",
        }

        self.observer = None
        self.handler = None
        self.loop: asyncio.AbstractEventLoop | None = None

        self.flush_task = None
        self.running = False

    def _should_ignore(self, file_path: Path) -> bool:
        """Check if file should be ignored."""
        if file_path.suffix != ".py":
            return True

        # Our own output must not retrigger a round
        if file_path.is_relative_to(self.output_dir):
            return True

        for root in self.source_roots:
            if file_path.is_relative_to(root):
                rel_path = file_path.relative_to(root)
                return any(part in self.ignore_dirs for part in rel_path.parts)

        return True

    def _enqueue_event(self, file_path: Path, operation: Literal["UPSERT", "DELETE"]):
        """Add event to queue (called from watchdog thread)."""
        if self._should_ignore(file_path) or self.loop is None:
            return

        asyncio.run_coroutine_threadsafe(
            self._async_enqueue(file_path, operation),
            self.loop
        )

    async def _async_enqueue(self, file_path: Path, operation: str):
        """Async helper to add event to queue."""
        async with self.queue_lock:
            self.event_queue[file_path] = (operation, time.time())

    async def _flush_events(self):
        """Flush pending events after debounce delay."""
        while self.running:
            await asyncio.sleep(self.debounce_ms / 1000.0)

            now = time.time()
            threshold = now - (self.debounce_ms / 1000.0)

            ready = []
            async with self.queue_lock:
                # Wait until the whole burst has settled
                if self.event_queue and all(ts <= threshold for _, ts in self.event_queue.values()):
                    ready = [(p, op) for p, (op, _) in self.event_queue.items()]
                    self.event_queue.clear()

            if ready:
                try:
                    self.run_round(ready)
                except Exception as e:
                    # keep watching; the next batch gets a fresh round
                    logger.exception(f"[Batch] Round failed: {e}")

    def run_round(self, events: list[tuple[Path, str]] | None = None) -> RoundResult:
        """Run one full generation round."""
        if events:
            logger.info(f"[Batch] {len(events)} file event(s), regenerating...")

        result = generate_from_sources(self.config, self.source_roots)
        logger.info(
            f"[Batch] Complete - {len(result.models)} entities, "
            f"{len(result.written)} files, {len(result.diagnostics.errors)} error(s)"
        )
        if self.on_round is not None:
            self.on_round(result)
        return result

    def start(self):
        """Start watching the source roots."""
        logger.info(f"Starting watcher for {', '.join(str(r) for r in self.source_roots)}")
        logger.info(f"Debounce: {self.debounce_ms}ms")

        self.loop = asyncio.get_running_loop()
        self.handler = _WatchdogHandler(self)

        self.observer = Observer()
        for root in self.source_roots:
            self.observer.schedule(self.handler, str(root), recursive=True)
        self.observer.start()

        self.running = True
        self.flush_task = asyncio.create_task(self._flush_events())

    async def stop(self):
        """Stop watching."""
        logger.info("Stopping watcher...")
        self.running = False

        if self.observer:
            self.observer.stop()
            self.observer.join()

        if self.flush_task:
            self.flush_task.cancel()
            try:
                await self.flush_task
            except asyncio.CancelledError:
                pass

        # Process any remaining events
        events = []
        async with self.queue_lock:
            if self.event_queue:
                events = [(p, op) for p, (op, _) in self.event_queue.items()]
                self.event_queue.clear()

        if events:
            try:
                self.run_round(events)
            except Exception as e:
                logger.exception(f"[Batch] Final round failed: {e}")

        logger.info("Watcher stopped.")


class _WatchdogHandler(FileSystemEventHandler):
    """Watchdog event handler that forwards events to watcher."""

    def __init__(self, watcher: SourceWatcher):
        self.watcher = watcher

    def on_created(self, event: FileSystemEvent):
        if event.is_directory:
            return
        self.watcher._enqueue_event(Path(event.src_path).resolve(), "UPSERT")

    def on_modified(self, event: FileSystemEvent):
        if event.is_directory:
            return
        self.watcher._enqueue_event(Path(event.src_path).resolve(), "UPSERT")

    def on_deleted(self, event: FileSystemEvent):
        if event.is_directory:
            return
        self.watcher._enqueue_event(Path(event.src_path).resolve(), "DELETE")

    def on_moved(self, event: FileSystemEvent):
        if event.is_directory:
            return
        self.watcher._enqueue_event(Path(event.src_path).resolve(), "DELETE")
        self.watcher._enqueue_event(Path(event.dest_path).resolve(), "UPSERT")
