import base64

import pytest

from interview_mentor.audio.playback import PlaybackBuffer

from conftest import FakeOutput, pcm_frame

SR = 24000


@pytest.fixture
def output():
	return FakeOutput()


@pytest.fixture
def buffer(output):
	return PlaybackBuffer(output, SR)


def starts(output):
	return [round(p.at, 6) for p in output.started]


def test_first_frame_starts_now(output, buffer):
	output.now = 2.0
	unit = buffer.enqueue(pcm_frame(0.1))
	assert unit.start == pytest.approx(2.0)
	assert unit.duration == pytest.approx(0.1)
	assert buffer.cursor == pytest.approx(2.1)


def test_frames_queued_back_to_back(output, buffer):
	for _ in range(3):
		buffer.enqueue(pcm_frame(0.1))
	assert starts(output) == [0.0, 0.1, 0.2]
	assert buffer.live_count == 3
	assert buffer.is_playing


def test_frame_arriving_mid_playback_waits_for_cursor(output, buffer):
	buffer.enqueue(pcm_frame(0.2))
	output.advance(0.05)
	buffer.enqueue(pcm_frame(0.1))
	assert starts(output) == [0.0, 0.2]


def test_underrun_restarts_at_current_time(output, buffer):
	buffer.enqueue(pcm_frame(0.1))
	output.advance(0.5)
	assert buffer.live_count == 0
	buffer.enqueue(pcm_frame(0.1))
	assert starts(output) == [0.0, 0.5]


def test_finished_units_leave_the_live_set(output, buffer):
	buffer.enqueue(pcm_frame(0.1))
	buffer.enqueue(pcm_frame(0.1))
	output.advance(0.1)
	assert buffer.live_count == 1
	output.advance(0.1)
	assert not buffer.is_playing


def test_interrupt_stops_everything_and_resets_cursor(output, buffer):
	buffer.enqueue(pcm_frame(0.1))
	buffer.enqueue(pcm_frame(0.1))
	buffer.interrupt()

	assert all(p.stopped for p in output.started)
	assert buffer.live_count == 0
	assert buffer.cursor is None

	output.advance(0.01)
	unit = buffer.enqueue(pcm_frame(0.1))
	assert unit.start == pytest.approx(0.01)


def test_interrupt_when_idle_is_harmless(buffer):
	buffer.interrupt()
	buffer.interrupt()
	assert buffer.cursor is None


def test_base64_frames_and_odd_lengths(output, buffer):
	raw = pcm_frame(0.1) + b"\x01"
	unit = buffer.enqueue(base64.b64encode(raw).decode("ascii"))
	assert unit.duration == pytest.approx(0.1)
	assert len(output.started[0].pcm) == len(raw) - 1


def test_empty_frame_is_skipped(output, buffer):
	assert buffer.enqueue(b"") is None
	assert buffer.enqueue(b"\x00") is None
	assert output.started == []
	assert buffer.cursor is None


def test_failed_start_does_not_leave_a_live_unit(output, buffer):
	buffer.enqueue(pcm_frame(0.1))
	output.fail_start = RuntimeError("device gone")
	with pytest.raises(RuntimeError):
		buffer.enqueue(pcm_frame(0.2))
	assert buffer.live_count == 1
	assert buffer.cursor == pytest.approx(0.1)

	output.fail_start = None
	assert buffer.enqueue(pcm_frame(0.1)).start == pytest.approx(0.1)


def test_close_releases_output_once(output, buffer):
	buffer.enqueue(pcm_frame(0.1))
	buffer.close()
	buffer.close()

	assert output.closed == 1
	assert output.started[0].stopped
	assert buffer.closed
	assert buffer.enqueue(pcm_frame(0.1)) is None
