"""State-machine based recording and playback coordination."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Callable, Optional

from errors import (
    ERROR_MESSAGES,
    INVALID_NAME,
    PLAYBACK_FAILED,
    RECORDER_START_FAILED,
    RECORDER_STOP_FAILED,
    STORE_DELETE_FAILED,
    STORE_FETCH_FAILED,
    STORE_LOAD_FAILED,
    STORE_RENAME_FAILED,
)
from interfaces import AudioStore, Player, Recorder, Ticker, TickerFactory
from logger import get_logger
from models import AudioClip, ErrorNotice, PlaybackState, RecordingPhase, SessionSnapshot
from ticker import PeriodicTicker

logger = get_logger("session")

StateCallback = Callable[[SessionSnapshot], None]
ErrorCallback = Callable[[str, str], None]

DEFAULT_NAME_PREFIX = "Audio_"


def display_name(raw_name: str) -> str:
    """Strip a trailing file extension: ``Audio_1.wav`` becomes ``Audio_1``."""
    stem, dot, _ = raw_name.rpartition(".")
    if dot and stem:
        return stem
    return raw_name


def elapsed_components(total_seconds: int) -> tuple[str, str, str]:
    hours, rest = divmod(max(0, int(total_seconds)), 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}", f"{minutes:02d}", f"{seconds:02d}"


def format_elapsed(total_seconds: int) -> str:
    return ":".join(elapsed_components(total_seconds))


class SessionCoordinator:
    """Single owner of the recording/playback session state.

    Every command and every ticker callback runs under one re-entrant lock,
    so collaborator calls and state mutations are strictly serialized.
    Failures of the store, recorder or player never escape a command: they
    are logged, reported through ``on_error`` and kept in
    ``SessionSnapshot.last_error``.
    """

    def __init__(
        self,
        store: AudioStore,
        recorder: Recorder,
        player: Player,
        poll_interval_s: float = 1.0,
        tick_interval_s: float = 1.0,
        ticker_factory: TickerFactory = PeriodicTicker,
        on_state_change: Optional[StateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._store = store
        self._recorder = recorder
        self._player = player
        self._poll_interval_s = poll_interval_s
        self._tick_interval_s = tick_interval_s
        self._ticker_factory = ticker_factory
        self._on_state_change = on_state_change
        self._on_error = on_error

        self._lock = threading.RLock()
        self._clips: list[AudioClip] = []
        self._phase = RecordingPhase.IDLE
        self._elapsed_s = 0
        self._playback: Optional[PlaybackState] = None
        self._pending_delete_id: Optional[int] = None
        self._pending_rename_id: Optional[int] = None
        self._name_draft = self._default_name()
        self._last_error: Optional[ErrorNotice] = None

        self._session_id = 0
        self._elapsed_ticker: Optional[Ticker] = None
        self._poller: Optional[Ticker] = None
        self._loader: Optional[threading.Thread] = None
        self._started = False
        self._closed = False

    @property
    def phase(self) -> RecordingPhase:
        return self._phase

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                clips=tuple(self._clips),
                recording_phase=self._phase,
                elapsed_s=self._elapsed_s,
                elapsed_text=format_elapsed(self._elapsed_s),
                playback=self._playback,
                pending_delete_clip_id=self._pending_delete_id,
                pending_rename_clip_id=self._pending_rename_id,
                pending_name_draft=self._name_draft,
                last_error=self._last_error,
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Kick off the background clip load and the playback poller."""
        with self._lock:
            if self._started or self._closed:
                return
            self._started = True
            self._poller = self._ticker_factory(
                self._poll_interval_s, self.poll_playback, "playback-poller"
            )
            self._poller.start()
            self._loader = threading.Thread(target=self.load_clips, name="clip-loader", daemon=True)
            self._loader.start()

    def wait_loaded(self, timeout: Optional[float] = None) -> bool:
        loader = self._loader
        if loader is None:
            return False
        loader.join(timeout=timeout)
        return not loader.is_alive()

    def teardown(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            poller, self._poller = self._poller, None
            if poller is not None:
                poller.cancel()
            was_recording = self._phase == RecordingPhase.RECORDING
            self._stop_elapsed_ticker()
            if was_recording:
                self._safe_stop_recorder()
            self._safe_stop_player()
            self._phase = RecordingPhase.IDLE
            self._elapsed_s = 0
        logger.info("Session torn down")

    def load_clips(self) -> None:
        with self._lock:
            if self._closed:
                return
            try:
                loaded = self._store.list_clips()
            except Exception as exc:
                logger.exception("Loading clips failed")
                self._report(STORE_LOAD_FAILED, str(exc))
                self._publish()
                return
            known = {clip.id for clip in self._clips}
            for clip in loaded:
                if clip.id in known:
                    continue
                known.add(clip.id)
                self._clips.append(self._normalized(clip))
            if self._phase == RecordingPhase.IDLE:
                self._name_draft = self._default_name()
            logger.info("Loaded %d clips", len(loaded))
            self._publish()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def request_start_recording(self) -> None:
        with self._lock:
            if self._closed:
                return
            if self._phase == RecordingPhase.RECORDING:
                logger.debug("request_start_recording ignored while recording")
                return
            self._phase = RecordingPhase.AWAITING_NAME
            self._name_draft = self._default_name()
            self._publish()

    def set_name_draft(self, text: str) -> None:
        with self._lock:
            if self._closed or self._phase != RecordingPhase.AWAITING_NAME:
                return
            self._name_draft = text
            self._publish()

    def confirm_recording_name(self, name: Optional[str] = None) -> None:
        with self._lock:
            if self._closed:
                return
            if self._phase != RecordingPhase.AWAITING_NAME:
                logger.warning("confirm_recording_name rejected in phase %s", self._phase.value)
                return
            name = (name if name is not None else self._name_draft).strip()
            if not name:
                name = self._default_name()

            try:
                target = self._store.locator_for(name)
            except (ValueError, FileExistsError) as exc:
                logger.warning("Rejected recording name %r: %s", name, exc)
                self._abort_start(INVALID_NAME, str(exc))
                return
            except Exception as exc:
                logger.exception("Resolving recording target failed")
                self._abort_start(RECORDER_START_FAILED, str(exc))
                return

            try:
                self._recorder.start(target)
            except Exception as exc:
                logger.exception("Recorder failed to start on %s", target)
                self._abort_start(RECORDER_START_FAILED, str(exc))
                return

            self._stop_elapsed_ticker()
            self._session_id += 1
            session_id = self._session_id
            self._phase = RecordingPhase.RECORDING
            self._elapsed_s = 0
            self._elapsed_ticker = self._ticker_factory(
                self._tick_interval_s,
                lambda: self._tick_elapsed(session_id),
                "elapsed-timer",
            )
            self._elapsed_ticker.start()
            logger.info("Recording %r to %s", name, target)
            self._publish()

    def cancel_recording_name(self) -> None:
        with self._lock:
            if self._closed or self._phase != RecordingPhase.AWAITING_NAME:
                return
            self._phase = RecordingPhase.IDLE
            self._name_draft = self._default_name()
            self._publish()

    def request_stop_recording(self) -> None:
        with self._lock:
            if self._closed:
                return
            if self._phase != RecordingPhase.RECORDING:
                logger.debug("request_stop_recording ignored in phase %s", self._phase.value)
                return
            self._stop_elapsed_ticker()
            self._elapsed_s = 0
            try:
                self._recorder.stop()
            except Exception as exc:
                logger.exception("Recorder failed to stop")
                self._report(RECORDER_STOP_FAILED, str(exc))

            clip: Optional[AudioClip] = None
            try:
                clip = self._store.get_most_recent_clip()
            except Exception as exc:
                logger.exception("Fetching the new clip failed")
                self._report(STORE_FETCH_FAILED, str(exc))

            if clip is not None:
                self._upsert_clip(self._normalized(clip))
                self._refresh_playlist()
                logger.info("Recorded clip %d (%s, %d ms)", clip.id, clip.name, clip.duration_ms)
            else:
                logger.info("Recording produced no clip")

            self._phase = RecordingPhase.IDLE
            self._name_draft = self._default_name()
            self._publish()

    def _tick_elapsed(self, session_id: int) -> None:
        with self._lock:
            if self._closed or session_id != self._session_id:
                return
            if self._phase != RecordingPhase.RECORDING:
                return
            self._elapsed_s += 1
            self._publish()

    def _abort_start(self, code: str, detail: str) -> None:
        self._phase = RecordingPhase.IDLE
        self._elapsed_s = 0
        self._name_draft = self._default_name()
        self._report(code, detail)
        self._publish()

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def play_or_toggle(self, clip_id: int) -> None:
        with self._lock:
            if self._closed:
                return
            self._refresh_playlist()
            clip = self._find(clip_id)
            if clip is None:
                logger.debug("play_or_toggle ignored for unknown clip %s", clip_id)
                return

            playback = self._playback
            if playback is None or playback.active_clip_id != clip_id:
                self._start_clip(clip)
                self._publish()
                return

            try:
                if playback.is_playing:
                    self._player.pause()
                else:
                    self._player.play()
            except Exception as exc:
                logger.exception("Toggling playback of clip %d failed", clip_id)
                self._report(PLAYBACK_FAILED, str(exc))
                self._publish()
                return
            self._playback = replace(playback, is_playing=not playback.is_playing)
            self._publish()

    def play_next(self) -> None:
        self._play_relative(1)

    def play_previous(self) -> None:
        self._play_relative(-1)

    def seek(self, percentage: float) -> None:
        with self._lock:
            if self._closed or self._playback is None:
                return
            percentage = min(100.0, max(0.0, float(percentage)))
            try:
                duration_ms = self._player.status().duration_ms
                if duration_ms <= 0:
                    duration_ms = self._playback.duration_ms
                self._player.seek_to(int(duration_ms * percentage / 100))
            except Exception as exc:
                logger.exception("Seeking to %.1f%% failed", percentage)
                self._report(PLAYBACK_FAILED, str(exc))
                self._publish()

    def poll_playback(self) -> None:
        with self._lock:
            if self._closed:
                return
            playback = self._playback
            if playback is None:
                return
            try:
                status = self._player.status()
            except Exception:
                logger.exception("Reading player status failed")
                return

            position_ms = status.position_ms
            if position_ms == playback.position_ms and status.is_playing == playback.is_playing:
                return
            duration_ms = playback.duration_ms
            progress_pct = playback.progress_pct
            if status.duration_ms > 0:
                duration_ms = status.duration_ms
                progress_pct = position_ms / status.duration_ms * 100
            self._playback = replace(
                playback,
                is_playing=status.is_playing,
                position_ms=position_ms,
                duration_ms=duration_ms,
                progress_pct=progress_pct,
            )
            self._publish()

    def _play_relative(self, step: int) -> None:
        with self._lock:
            if self._closed or self._playback is None or not self._clips:
                return
            ids = [clip.id for clip in self._clips]
            try:
                index = ids.index(self._playback.active_clip_id)
            except ValueError:
                return
            self._refresh_playlist()
            self._start_clip(self._clips[(index + step) % len(self._clips)])
            self._publish()

    def _start_clip(self, clip: AudioClip) -> bool:
        try:
            self._player.play_from_locator(clip.locator)
        except Exception as exc:
            logger.exception("Playing clip %d from %s failed", clip.id, clip.locator)
            self._report(PLAYBACK_FAILED, str(exc))
            return False
        self._playback = PlaybackState(
            active_clip_id=clip.id,
            is_playing=True,
            position_ms=0,
            duration_ms=clip.duration_ms,
            progress_pct=0.0,
        )
        logger.info("Playing clip %d (%s)", clip.id, clip.name)
        return True

    # ------------------------------------------------------------------
    # Delete / rename
    # ------------------------------------------------------------------

    def request_delete(self, clip_id: int) -> None:
        with self._lock:
            if self._closed or self._find(clip_id) is None:
                return
            self._pending_delete_id = clip_id
            self._publish()

    def cancel_delete(self) -> None:
        with self._lock:
            if self._closed or self._pending_delete_id is None:
                return
            self._pending_delete_id = None
            self._publish()

    def confirm_delete(self) -> None:
        with self._lock:
            if self._closed:
                return
            clip_id = self._pending_delete_id
            if clip_id is None:
                logger.debug("confirm_delete ignored, nothing pending")
                return
            self._pending_delete_id = None
            clip = self._find(clip_id)
            if clip is None:
                self._publish()
                return

            try:
                deleted = self._store.delete_clip(clip.name)
            except Exception as exc:
                logger.exception("Deleting clip %d failed", clip_id)
                deleted = False
                detail = str(exc)
            else:
                detail = f"store refused to delete {clip.name!r}"
            if not deleted:
                self._report(STORE_DELETE_FAILED, detail)
                self._publish()
                return

            self._clips = [c for c in self._clips if c.id != clip_id]
            if self._playback is not None and self._playback.active_clip_id == clip_id:
                self._safe_stop_player()
                self._playback = None
            self._refresh_playlist()
            if self._phase == RecordingPhase.IDLE:
                self._name_draft = self._default_name()
            logger.info("Deleted clip %d (%s)", clip_id, clip.name)
            self._publish()

    def request_rename(self, clip_id: int) -> None:
        with self._lock:
            if self._closed or self._find(clip_id) is None:
                return
            self._pending_rename_id = clip_id
            self._publish()

    def cancel_rename(self) -> None:
        with self._lock:
            if self._closed or self._pending_rename_id is None:
                return
            self._pending_rename_id = None
            self._publish()

    def confirm_rename(self, new_name: str) -> None:
        with self._lock:
            if self._closed:
                return
            clip_id = self._pending_rename_id
            if clip_id is None:
                return
            self._pending_rename_id = None
            clip = self._find(clip_id)
            if clip is None:
                self._publish()
                return
            new_name = new_name.strip()
            if not new_name:
                self._report(INVALID_NAME, "empty name")
                self._publish()
                return
            if new_name == clip.name:
                self._publish()
                return

            try:
                locator = self._store.rename_clip(clip.name, new_name)
            except ValueError as exc:
                self._report(INVALID_NAME, str(exc))
                self._publish()
                return
            except Exception as exc:
                logger.exception("Renaming clip %d failed", clip_id)
                self._report(STORE_RENAME_FAILED, str(exc))
                self._publish()
                return
            if locator is None:
                self._report(STORE_RENAME_FAILED, f"store refused to rename {clip.name!r}")
                self._publish()
                return

            self._upsert_clip(replace(clip, name=new_name, locator=locator))
            self._refresh_playlist()
            logger.info("Renamed clip %d to %r", clip_id, new_name)
            self._publish()

    def dismiss_error(self) -> None:
        with self._lock:
            if self._closed or self._last_error is None:
                return
            self._last_error = None
            self._publish()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _default_name(self) -> str:
        return f"{DEFAULT_NAME_PREFIX}{len(self._clips) + 1}"

    def _normalized(self, clip: AudioClip) -> AudioClip:
        name = display_name(clip.name)
        if name == clip.name:
            return clip
        return replace(clip, name=name)

    def _find(self, clip_id: int) -> Optional[AudioClip]:
        for clip in self._clips:
            if clip.id == clip_id:
                return clip
        return None

    def _upsert_clip(self, clip: AudioClip) -> None:
        for index, existing in enumerate(self._clips):
            if existing.id == clip.id:
                self._clips[index] = clip
                return
        self._clips.append(clip)

    def _refresh_playlist(self) -> None:
        try:
            self._player.set_playlist(list(self._clips))
        except Exception:
            logger.exception("Updating the player playlist failed")

    def _stop_elapsed_ticker(self) -> None:
        ticker, self._elapsed_ticker = self._elapsed_ticker, None
        if ticker is not None:
            ticker.cancel()

    def _safe_stop_recorder(self) -> None:
        try:
            self._recorder.stop()
        except Exception:
            logger.exception("Recorder failed to stop")

    def _safe_stop_player(self) -> None:
        try:
            self._player.stop()
        except Exception:
            logger.exception("Player failed to stop")

    def _report(self, code: str, detail: str) -> None:
        message = ERROR_MESSAGES.get(code, detail)
        logger.warning("%s: %s", code, detail)
        self._last_error = ErrorNotice(code=code, message=message)
        if self._on_error:
            self._on_error(code, message)

    def _publish(self) -> None:
        if self._closed or not self._on_state_change:
            return
        self._on_state_change(self.snapshot())
