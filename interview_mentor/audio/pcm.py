"""PCM16 helpers. Mono, little-endian signed 16-bit samples."""
from __future__ import annotations

from typing import Union
import base64
import io
import wave

import numpy as np


PCM16 = np.dtype("<i2")


def float_to_pcm16(samples: np.ndarray) -> bytes:
	"""Convert float samples in [-1, 1] to PCM16 bytes, clipping out-of-range values."""
	x = np.asarray(samples, dtype=np.float32) * 32768.0
	return np.clip(x, -32768, 32767).astype(PCM16).tobytes()


def pcm16_to_float(data: bytes) -> np.ndarray:
	usable = len(data) - (len(data) % 2)
	return np.frombuffer(data[:usable], dtype=PCM16).astype(np.float32) / 32768.0


def float32_bytes_to_array(data: bytes) -> np.ndarray:
	"""Little-endian float32 bytes (as sent by a browser capture node) to an array."""
	usable = len(data) - (len(data) % 4)
	return np.frombuffer(data[:usable], dtype="<f4").astype(np.float32)


def encode_base64(data: bytes) -> str:
	return base64.b64encode(data).decode("ascii")


def decode_frame(frame: Union[bytes, bytearray, str]) -> bytes:
	"""Accept a base64 string or raw bytes; always return whole 16-bit samples.

	A trailing odd byte cannot form a sample and is dropped.
	"""
	data = base64.b64decode(frame) if isinstance(frame, str) else bytes(frame)
	if len(data) % 2:
		data = data[:-1]
	return data


def sample_count(data: bytes) -> int:
	return len(data) // 2


def duration_seconds(data: bytes, sample_rate: int) -> float:
	return sample_count(data) / float(sample_rate)


def pcm16_to_wav(data: bytes, sample_rate: int) -> bytes:
	buf = io.BytesIO()
	with wave.open(buf, "wb") as wav:
		wav.setnchannels(1)
		wav.setsampwidth(2)
		wav.setframerate(sample_rate)
		wav.writeframes(decode_frame(data))
	return buf.getvalue()
