"""Playback queue: play order, shuffle/loop transitions and watch tracking.

The queue drives an external playback engine (anything implementing
:class:`PlaybackEngine`) and is driven back by the engine's callbacks
(:meth:`PlaybackQueue.on_time_update`, :meth:`PlaybackQueue.on_reached_end`,
:meth:`PlaybackQueue.on_failed_to_open`). All transitions are serialized by
a lock, so user actions and engine callbacks never interleave. Events and
callbacks raised by a transition are delivered after the lock is released,
so subscribers may call back into the queue.
"""

import asyncio
import random
from contextlib import asynccontextmanager
from enum import Enum
from functools import partial
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    runtime_checkable,
)

import structlog

from ..common.config import PlaybackConfig
from .event_bus import PLAYBACK_FAILED, PLAYBACK_ITEM_CHANGED, PLAYBACK_STATE_CHANGED, EventBus
from .exceptions import FilesystemError, PlaybackOpenFailure
from .models import PlaybackContext, Video
from .settings import SettingsStore

logger = structlog.get_logger(__name__)

WatchedCallback = Callable[[str], Awaitable[Any]]


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"


@runtime_checkable
class PlaybackEngine(Protocol):
    """
    The external component that actually decodes and renders video.

    Calls are fire-and-forget; the engine reports back through the queue's
    ``on_*`` callbacks.
    """

    def open(self, location: str) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, time: float) -> None: ...

    def stop(self) -> None: ...


class PlaybackQueue:
    """
    The single active playback queue.

    The play order is a list of indices into the source list. With shuffle
    off it is the identity order and playback starts at the chosen video's
    position. With shuffle on the chosen video always comes first and the
    remaining indices follow in random order.

    A play counts as watched once the position passes
    ``config.watch_threshold`` of the duration, or when the item reaches its
    end, whichever happens first; each item instance counts at most once.

    Items the engine cannot open are skipped. Consecutive failures are
    reported once, as a single ``playback_failed`` event, when the run of
    failures ends or when a whole pass over the order has failed.

    Example:
        >>> queue = PlaybackQueue(engine, PlaybackConfig(), on_watched=library.mark_watched)
        >>> await queue.play(videos[2], videos, shuffle=False, loop=False)
        >>> await queue.advance()
    """

    def __init__(
        self,
        engine: PlaybackEngine,
        config: Optional[PlaybackConfig] = None,
        on_watched: Optional[WatchedCallback] = None,
        settings: Optional[SettingsStore] = None,
        event_bus: Optional[EventBus] = None,
        rng: Optional[random.Random] = None,
    ):
        self.engine = engine
        self.config = config or PlaybackConfig()
        self._on_watched = on_watched
        self._settings = settings
        self._event_bus = event_bus
        self._rng = rng or random.Random()
        self._lock = asyncio.Lock()
        self._pending: List[Callable[[], Awaitable[Any]]] = []

        self._source: List[Video] = []
        self._order: List[int] = []
        self._position = 0
        self._state = PlaybackState.IDLE
        self.shuffle = False
        self.loop = False
        self.context: Optional[PlaybackContext] = None

        self.current_time = 0.0
        self.duration = 0.0
        self._watch_counted = False
        self._failures: List[Tuple[str, str]] = []
        self.last_failure: Optional[PlaybackOpenFailure] = None

    # ========== Read-only view ==========

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def position(self) -> int:
        """Index of the current item in the play order."""
        return self._position

    @property
    def source(self) -> List[Video]:
        return list(self._source)

    @property
    def play_order(self) -> List[Video]:
        return [self._source[i] for i in self._order]

    @property
    def current(self) -> Optional[Video]:
        if self._state is PlaybackState.IDLE or not self._order:
            return None
        return self._source[self._order[self._position]]

    @property
    def is_active(self) -> bool:
        return self._state in (PlaybackState.PLAYING, PlaybackState.PAUSED)

    # ========== Order construction ==========

    def _shuffled_order(self, first: int) -> List[int]:
        rest = [i for i in range(len(self._source)) if i != first]
        self._rng.shuffle(rest)
        return [first] + rest

    def _new_cycle_order(self, last: int) -> List[int]:
        """Fresh permutation for a looped shuffle cycle, avoiding an immediate repeat."""
        order = list(range(len(self._source)))
        self._rng.shuffle(order)
        if len(order) > 1 and order[0] == last:
            swap = self._rng.randrange(1, len(order))
            order[0], order[swap] = order[swap], order[0]
        return order

    # ========== Notifications ==========

    @asynccontextmanager
    async def _transition(self) -> AsyncIterator[None]:
        """Hold the lock for one transition, then run what it deferred."""
        async with self._lock:
            pending: List[Callable[[], Awaitable[Any]]] = []
            self._pending = pending
            try:
                yield
            finally:
                self._pending = []
        for notify in pending:
            await notify()

    def _defer(self, notify: Callable[[], Awaitable[Any]]) -> None:
        self._pending.append(notify)

    def _emit(self, event_type: str, payload: dict) -> None:
        if self._event_bus:
            self._defer(partial(self._event_bus.emit, event_type, payload))

    def _set_state(self, state: PlaybackState) -> None:
        if state is self._state:
            return
        previous = self._state
        self._state = state
        logger.debug("playback_state_changed", previous=previous.value, state=state.value)
        self._emit(PLAYBACK_STATE_CHANGED, {"state": state.value, "previous": previous.value})

    async def _record_last_played(self, context: PlaybackContext, video_id: str) -> None:
        try:
            await self._settings.record_last_played(context, video_id)
        except FilesystemError as e:
            logger.error("last_played_persist_failed", video_id=video_id, error=str(e))

    async def _notify_watched(self, video_id: str) -> None:
        try:
            await self._on_watched(video_id)
        except FilesystemError as e:
            logger.error("watch_count_persist_failed", video_id=video_id, error=str(e))

    def _flush_failures(self) -> None:
        """Report the current run of open failures as one aggregated event."""
        if not self._failures:
            return
        failures, self._failures = self._failures, []
        failure = PlaybackOpenFailure(
            f"{len(failures)} item(s) could not be opened",
            failures=failures,
        )
        self.last_failure = failure
        logger.warning(
            "playback_items_skipped",
            count=len(failures),
            video_ids=failure.video_ids,
        )
        self._emit(
            PLAYBACK_FAILED,
            {
                "message": str(failure),
                "failures": [{"video_id": v, "error": e} for v, e in failures],
            },
        )

    # ========== Internal transitions (lock held) ==========

    def _start_current(self) -> Video:
        video = self._source[self._order[self._position]]
        self.current_time = 0.0
        self.duration = video.duration
        self._watch_counted = False

        self.engine.open(video.location)
        self.engine.play()

        logger.info(
            "playback_item_started",
            video_id=video.id,
            position=self._position,
            order_length=len(self._order),
        )
        self._set_state(PlaybackState.PLAYING)
        self._emit(
            PLAYBACK_ITEM_CHANGED,
            {
                "video_id": video.id,
                "position": self._position,
                "context": self.context.model_dump(mode="json") if self.context else None,
            },
        )
        if self._settings and self.context:
            self._defer(partial(self._record_last_played, self.context, video.id))
        return video

    def _finish(self) -> None:
        self.engine.stop()
        self._set_state(PlaybackState.ENDED)
        logger.info("playback_queue_ended", order_length=len(self._order))
        self._flush_failures()

    def _advance(self) -> Optional[Video]:
        if self._state is PlaybackState.IDLE or self._state is PlaybackState.ENDED:
            return None

        if self._position + 1 < len(self._order):
            self._position += 1
            return self._start_current()

        if not self.loop:
            self._finish()
            return None

        if self.shuffle:
            self._order = self._new_cycle_order(last=self._order[self._position])
            logger.debug("playback_reshuffled", order_length=len(self._order))
        self._position = 0
        return self._start_current()

    def _count_watch(self) -> None:
        video = self.current
        if video is None or self._watch_counted:
            return
        self._watch_counted = True
        logger.debug("playback_watch_counted", video_id=video.id, at=self.current_time)
        if self._on_watched:
            self._defer(partial(self._notify_watched, video.id))

    # ========== User actions ==========

    async def play(
        self,
        video: Video,
        source: Sequence[Video],
        shuffle: Optional[bool] = None,
        loop: bool = False,
        context: Optional[PlaybackContext] = None,
    ) -> Video:
        """
        Replace the queue with ``source`` and start playing ``video``.

        Args:
            video: The chosen item; always plays immediately
            source: Ordered list the queue is built from (must contain ``video``)
            shuffle: Shuffle the remainder; defaults to the persisted shuffle mode
            loop: Wrap around instead of ending after the last item
            context: Where playback was started from (default: the library)

        Raises:
            ValueError: If ``video`` is not in ``source``
        """
        source = list(source)
        start = next((i for i, v in enumerate(source) if v.id == video.id), None)
        if start is None:
            raise ValueError(f"Video {video.id} is not in the source list")

        if shuffle is None:
            shuffle = self._settings.shuffle_mode if self._settings else False

        async with self._transition():
            if self.is_active:
                self.engine.stop()

            self._source = source
            self.shuffle = shuffle
            self.loop = loop
            self.context = context or PlaybackContext.library()
            self._failures = []
            self.last_failure = None

            if shuffle:
                self._order = self._shuffled_order(start)
                self._position = 0
            else:
                self._order = list(range(len(source)))
                self._position = start

            logger.info(
                "playback_queue_created",
                start=video.id,
                size=len(source),
                shuffle=shuffle,
                loop=loop,
                context=self.context.kind.value,
            )
            return self._start_current()

    async def advance(self) -> Optional[Video]:
        """
        Move to the next item in play order.

        Returns:
            The item now playing, or None when the queue ended (or is idle)
        """
        async with self._transition():
            return self._advance()

    async def previous(self) -> Optional[Video]:
        """
        Go back one item, or restart the current one.

        Past ``config.restart_threshold`` seconds the current item restarts.
        At the first position of the order this is a no-op; there is no
        backward wraparound.
        """
        async with self._transition():
            if self._state is PlaybackState.IDLE:
                return None

            if self.current_time > self.config.restart_threshold and self._state is not PlaybackState.ENDED:
                self.engine.seek(0.0)
                self.current_time = 0.0
                return self.current

            if self._position == 0:
                return self.current

            self._position -= 1
            return self._start_current()

    async def toggle_shuffle(self) -> bool:
        """
        Flip shuffle without interrupting the current item.

        Items already played stay where they are and the current position is
        unchanged; only the not-yet-played remainder is re-ordered (randomly
        when turning shuffle on, in source order after the current item when
        turning it off).

        Returns:
            The new shuffle flag
        """
        async with self._transition():
            self.shuffle = not self.shuffle

            if self._order and self._state is not PlaybackState.IDLE:
                played = self._order[: self._position + 1]
                seen = set(played)
                remaining = [i for i in range(len(self._source)) if i not in seen]
                if self.shuffle:
                    self._rng.shuffle(remaining)
                else:
                    current = self._order[self._position]
                    remaining.sort(key=lambda i: (i - current) % len(self._source))
                self._order = played + remaining

            logger.info("playback_shuffle_toggled", shuffle=self.shuffle, position=self._position)

        if self._settings:
            try:
                await self._settings.set_shuffle_mode(self.shuffle)
            except FilesystemError as e:
                logger.error("shuffle_mode_persist_failed", error=str(e))
        return self.shuffle

    async def set_loop(self, enabled: bool) -> None:
        async with self._transition():
            self.loop = enabled

    async def toggle_play_pause(self) -> PlaybackState:
        async with self._transition():
            if self._state is PlaybackState.PLAYING:
                self.engine.pause()
                self._set_state(PlaybackState.PAUSED)
            elif self._state is PlaybackState.PAUSED:
                self.engine.play()
                self._set_state(PlaybackState.PLAYING)
            return self._state

    async def seek(self, time: float) -> None:
        """Seek the current item, clamped to its known duration."""
        async with self._transition():
            if not self.is_active:
                return
            time = max(0.0, time)
            if self.duration > 0:
                time = min(time, self.duration)
            self.engine.seek(time)
            self.current_time = time

    async def stop(self) -> None:
        """Stop playback and discard the queue."""
        async with self._transition():
            if self._state is PlaybackState.IDLE:
                return
            self.engine.stop()
            self._flush_failures()
            self._source = []
            self._order = []
            self._position = 0
            self._set_state(PlaybackState.IDLE)
            logger.info("playback_stopped")

    # ========== Engine callbacks ==========

    async def on_duration(self, duration: float) -> None:
        """Engine reports the real duration once the item is loaded."""
        async with self._transition():
            if duration > 0:
                self.duration = duration

    async def on_time_update(self, time: float) -> None:
        """Engine reports the playhead position of the current item."""
        async with self._transition():
            if not self.is_active:
                return
            # The item opened, so any run of failures is over
            self._flush_failures()
            self.current_time = time
            if self.duration > 0 and time >= self.config.watch_threshold * self.duration:
                self._count_watch()

    async def on_reached_end(self) -> None:
        """Engine reports the current item played to the end."""
        async with self._transition():
            if not self.is_active:
                return
            self._flush_failures()
            self._count_watch()
            self._advance()

    async def on_failed_to_open(self, error: Any) -> None:
        """
        Engine could not open the current item: skip to the next one.

        Stops after one full pass over the play order has failed.
        """
        async with self._transition():
            video = self.current
            if video is None or self._state is PlaybackState.ENDED:
                return

            self._failures.append((video.id, str(error)))
            logger.debug("playback_open_failed", video_id=video.id, error=str(error))

            if len(self._failures) >= len(self._order):
                logger.warning("playback_pass_failed", items=len(self._order))
                self._finish()
                return

            self._advance()
