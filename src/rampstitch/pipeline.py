"""Job skeleton shared by the speed-curve and stitch jobs.

A Job is single-use and synchronous. It owns the handles it opens: input
decoders, the video (and audio) sample source, and the output container.
It also owns the frame-grid cursor, the last output slot actually written.

Teardown runs on every exit path in a fixed order:
  1. close the sample sources (flushes pending data),
  2. cancel the output container if it started but never finalized,
  3. dispose every input decoder still open.
Each action is guarded on its own, so one failure never blocks the rest.
Swallowed failures are logged and kept in `teardown_errors`. Handles that
finished normally are set to None on the success path, so teardown has
nothing left to do for them.
"""

import logging
from collections.abc import Callable, Iterable

from .encoding import MAX_OUTPUT_FPS
from .media import FrameGrid, MediaSample
from .progress import ProgressCallback, ProgressReporter

logger = logging.getLogger(__name__)


class Job:
    kind = "Job"
    # True: a written sample's duration spans the gap since the previous
    # write. False: every written sample lasts one grid interval.
    gap_durations = True

    def __init__(
        self,
        on_progress: ProgressCallback | None = None,
        total_items: int | None = None,
        framerate: int = MAX_OUTPUT_FPS,
    ):
        self.progress = ProgressReporter(on_progress, total_items)
        self.status = "idle"
        self.grid = FrameGrid(framerate)
        self.cursor = -1
        self.inputs = []
        self.video_source = None
        self.audio_source = None
        self.output = None
        self.output_started = False
        self.teardown_errors: list[tuple[str, Exception]] = []

    # ── Lifecycle ──────────────────────────────────────────────────

    def run(self):
        if self.status != "idle":
            raise RuntimeError(f"{self.kind} job already ran; create a new job per invocation")
        self.status = "processing"
        try:
            result = self._execute()
        except Exception as e:
            self.status = "error"
            logger.error(f"{self.kind} failed: {e}")
            self.progress.failed(e)
            raise
        finally:
            self._teardown()
        self.status = "complete"
        return result

    def _execute(self):
        raise NotImplementedError

    def _teardown(self) -> None:
        self._guarded("close audio source", self.close_audio_source)
        self._guarded("close video source", self.close_video_source)
        self._guarded("cancel output", self._cancel_output)
        for video_input in list(self.inputs):
            self._guarded("dispose input", lambda: self.release_input(video_input))

    def _guarded(self, label: str, action: Callable[[], None]) -> None:
        try:
            action()
        except Exception as e:
            logger.warning(f"Failed to {label}: {e}")
            self.teardown_errors.append((label, e))

    # ── Handle management ─────────────────────────────────────────

    def open_input(self, opener, data: bytes):
        video_input = opener(data)
        self.inputs.append(video_input)
        return video_input

    def release_input(self, video_input) -> None:
        if video_input in self.inputs:
            self.inputs.remove(video_input)
            video_input.dispose()

    def start_output(self, container) -> None:
        self.output = container
        container.start()
        self.output_started = True

    def close_video_source(self) -> None:
        source, self.video_source = self.video_source, None
        if source is not None:
            source.close()

    def close_audio_source(self) -> None:
        source, self.audio_source = self.audio_source, None
        if source is not None:
            source.close()

    def finalize_output(self) -> bytes:
        data = self.output.finalize()
        self.output_started = False
        self.output = None
        return data

    def _cancel_output(self) -> None:
        output, self.output = self.output, None
        if output is not None and self.output_started:
            self.output_started = False
            output.cancel()

    # ── Sample pump ───────────────────────────────────────────────

    def pump(
        self,
        samples: Iterable[MediaSample],
        place: Callable[[MediaSample], int],
        on_write: Callable[[int], None] | None = None,
    ) -> int:
        """Decode-iterate, re-timestamp, and encode-emit.

        `place` maps each sample to an output grid slot. Samples landing on
        or before the cursor are dropped; the cursor only advances on a
        write, so written slots are strictly increasing. Every sample is
        closed exactly once. Returns the number of samples written.
        """
        written = 0
        it = iter(samples)
        try:
            for sample in it:
                try:
                    slot = place(sample)
                    if slot <= self.cursor:
                        continue
                    gap = slot - self.cursor if self.gap_durations and self.cursor >= 0 else 1
                    sample.timestamp = self.grid.time(slot)
                    sample.duration = gap * self.grid.interval
                    self.video_source.add(sample)
                    self.cursor = slot
                    written += 1
                    if on_write is not None:
                        on_write(written)
                finally:
                    sample.close()
        finally:
            # Stop a half-consumed decode generator.
            close = getattr(it, "close", None)
            if close is not None:
                close()
        return written

    @property
    def written_duration(self) -> float:
        """Output length covered by the samples written so far."""
        return self.grid.time(self.cursor + 1)
