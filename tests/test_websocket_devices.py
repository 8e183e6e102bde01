import asyncio
import base64

import numpy as np
import pytest

from interview_mentor.audio.websocket_devices import WebSocketMicrophone, WebSocketSpeaker
from interview_mentor.errors import MediaError

from conftest import settle

pytestmark = pytest.mark.anyio


def floats(*values):
	return np.array(values, dtype="<f4").tobytes()


async def test_microphone_open_waits_for_grant():
	microphone = WebSocketMicrophone(frame_size=4, timeout=1.0)
	opening = asyncio.create_task(microphone.open())
	await settle()
	assert not opening.done()

	microphone.grant()
	await opening


async def test_microphone_denial_raises_media_error():
	microphone = WebSocketMicrophone(frame_size=4)
	microphone.deny("NotAllowedError")
	with pytest.raises(MediaError) as info:
		await microphone.open()
	assert info.value.code == "permission-denied"
	assert "NotAllowedError" in info.value.message


async def test_microphone_times_out_without_answer():
	microphone = WebSocketMicrophone(frame_size=4, timeout=0.01)
	with pytest.raises(MediaError) as info:
		await microphone.open()
	assert info.value.code == "timeout"


async def test_closing_microphone_releases_pending_open():
	microphone = WebSocketMicrophone(frame_size=4, timeout=5.0)
	opening = asyncio.create_task(microphone.open())
	await settle()
	microphone.close()
	with pytest.raises(MediaError):
		await opening


async def test_microphone_rechunks_into_fixed_frames():
	microphone = WebSocketMicrophone(frame_size=4)
	frames = []
	assert microphone.feed(floats(0.1, 0.2)) == 0

	microphone.attach(frames.append)
	assert microphone.feed(floats(0.1, 0.2, 0.3, 0.4, 0.5, 0.6)) == 1
	assert microphone.feed(floats(0.7, 0.8)) == 1
	assert [f.tolist() for f in frames] == [
		pytest.approx([0.1, 0.2, 0.3, 0.4]),
		pytest.approx([0.5, 0.6, 0.7, 0.8]),
	]

	microphone.close()
	assert microphone.feed(floats(0.1, 0.2, 0.3, 0.4)) == 0


async def test_speaker_sends_scheduled_audio_and_stops():
	sent = []
	now = [10.0]
	speaker = WebSocketSpeaker(sent.append, sample_rate=24000, clock=lambda: now[0])
	ended = []

	now[0] = 10.5
	assert speaker.current_time == pytest.approx(0.5)
	unit = speaker.start(b"\x01\x00\x02\x00", 0.5, 0.001, lambda: ended.append(True))

	message = sent[0]
	assert message["type"] == "audio"
	assert message["start_at"] == 0.5
	assert message["sample_rate"] == 24000
	assert base64.b64decode(message["data"]) == b"\x01\x00\x02\x00"

	unit.stop()
	assert sent[-1] == {"type": "stop", "id": message["id"]}
	await asyncio.sleep(0.01)
	assert ended == []


async def test_speaker_reports_end_of_playback():
	speaker = WebSocketSpeaker(lambda message: None, clock=lambda: 0.0)
	ended = asyncio.Event()
	speaker.start(b"\x00\x00", 0.0, 0.005, ended.set)
	await asyncio.wait_for(ended.wait(), 1.0)


async def test_closed_speaker_sends_nothing():
	sent = []
	speaker = WebSocketSpeaker(sent.append, clock=lambda: 0.0)
	speaker.close()
	unit = speaker.start(b"\x00\x00", 0.0, 0.01, lambda: None)
	unit.stop()
	assert sent == []
