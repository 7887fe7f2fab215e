"""Tests for the Job skeleton: sample pump, state machine and teardown."""

import pytest

from conftest import FakeContainer, FakeInput, frame_times
from rampstitch.pipeline import Job
from rampstitch.progress import ProgressEvent, ProgressReporter


class PumpJob(Job):
    """Minimal job: pumps one fake input into a fake container."""

    kind = "Pump"

    def __init__(self, video_input, container, place, fail=None, **kwargs):
        super().__init__(**kwargs)
        self.video_input = video_input
        self.container = container
        self.place = place
        self.fail = fail

    def _execute(self):
        self.open_input(lambda data: self.video_input, b"clip")
        self.video_source = self.container.add_video_track(None)
        self.start_output(self.container)
        written = self.pump(self.video_input.samples(0, None), self.place)
        if self.fail is not None:
            raise self.fail
        self.close_video_source()
        self.finalize_output()
        return written


class TestPump:
    def test_drops_samples_on_or_before_cursor(self, event_log):
        video_input = FakeInput(frame_times(6), log=event_log)
        container = FakeContainer(event_log)
        slots = iter([0, 0, 2, 1, 2, 5])
        job = PumpJob(video_input, container, lambda s: next(slots))

        assert job.run() == 3
        assert [round(t * 60) for t, _ in container.video.written] == [0, 2, 5]
        assert job.cursor == 5
        assert all(s.closed for s in video_input.yielded)

    def test_durations_span_the_gap(self, event_log):
        video_input = FakeInput(frame_times(3), log=event_log)
        container = FakeContainer(event_log)
        slots = iter([0, 3, 4])
        PumpJob(video_input, container, lambda s: next(slots)).run()

        durations = [round(d * 60) for _, d in container.video.written]
        assert durations == [1, 3, 1]

    def test_fixed_durations_when_gap_durations_off(self, event_log):
        video_input = FakeInput(frame_times(3), log=event_log)
        container = FakeContainer(event_log)
        slots = iter([0, 3, 4])
        job = PumpJob(video_input, container, lambda s: next(slots))
        job.gap_durations = False
        job.run()

        assert [round(d * 60) for _, d in container.video.written] == [1, 1, 1]

    def test_written_duration(self, event_log):
        video_input = FakeInput(frame_times(2), log=event_log)
        slots = iter([0, 59])
        job = PumpJob(video_input, FakeContainer(event_log), lambda s: next(slots))
        job.run()
        assert job.written_duration == pytest.approx(1.0)

    def test_closes_sample_when_placement_fails(self, event_log):
        video_input = FakeInput(frame_times(3), log=event_log)

        def place(sample):
            raise ValueError("bad sample")

        job = PumpJob(video_input, FakeContainer(event_log), place)
        with pytest.raises(ValueError):
            job.run()
        assert all(s.closed for s in video_input.yielded)


class TestLifecycle:
    def test_runs_once(self, event_log):
        job = PumpJob(FakeInput(frame_times(1), log=event_log), FakeContainer(event_log), lambda s: 0)
        job.run()
        assert job.status == "complete"
        with pytest.raises(RuntimeError):
            job.run()

    def test_success_teardown_only_disposes_input(self, event_log):
        job = PumpJob(FakeInput(frame_times(2), log=event_log), FakeContainer(event_log), lambda s: round(s.timestamp * 60))
        job.run()
        assert event_log == ["start", "close video", "finalize", "dispose input"]

    def test_failure_teardown_order(self, event_log):
        container = FakeContainer(event_log)
        video_input = FakeInput(frame_times(4), fail_after=2, log=event_log)
        job = PumpJob(video_input, container, lambda s: round(s.timestamp * 60))

        with pytest.raises(RuntimeError, match="decode failed"):
            job.run()
        assert event_log == ["start", "close video", "cancel", "dispose input"]
        assert job.status == "error"
        assert video_input.disposed == 1

    def test_teardown_failures_are_swallowed_and_recorded(self, event_log):
        container = FakeContainer(event_log, video_fail_on_close=True)
        video_input = FakeInput(frame_times(2), log=event_log)
        job = PumpJob(
            video_input, container, lambda s: round(s.timestamp * 60),
            fail=RuntimeError("boom"),
        )

        with pytest.raises(RuntimeError, match="boom"):
            job.run()
        assert container.cancelled
        assert video_input.disposed == 1
        assert [label for label, _ in job.teardown_errors] == ["close video source"]

    def test_error_reported_to_observer(self, event_log):
        events = []
        job = PumpJob(
            FakeInput(frame_times(1), log=event_log), FakeContainer(event_log),
            lambda s: 0, fail=RuntimeError("broken pipe"), on_progress=events.append,
        )
        with pytest.raises(RuntimeError):
            job.run()
        assert events[-1].status == "error"
        assert events[-1].error == "broken pipe"
        assert events[-1].message == "Error: broken pipe"


class TestProgressReporter:
    def test_clamps_percent(self):
        events = []
        reporter = ProgressReporter(events.append, total_items=3)
        reporter.processing("over", 140)
        reporter.processing("under", -5, current_item=2)
        assert [e.percent for e in events] == [100.0, 0.0]
        assert events[1].current_item == 2
        assert events[1].total_items == 3

    def test_observer_exception_is_ignored(self):
        def broken(event):
            raise RuntimeError("observer bug")

        reporter = ProgressReporter(broken)
        event = reporter.complete("done")
        assert event.status == "complete"
        assert reporter.last is event

    def test_failed_without_message_uses_type_name(self):
        event = ProgressReporter().failed(KeyError())
        assert event.error == "KeyError"

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            ProgressEvent("paused", "nope", 0)
