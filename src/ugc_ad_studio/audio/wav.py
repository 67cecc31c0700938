"""PCM16 to WAV container conversion for Gemini TTS audio.

The TTS endpoint returns raw PCM16 little-endian samples at 24 kHz.
Browsers cannot play raw PCM, so each clip is normalized per channel
and re-quantized into a canonical 44-byte-header RIFF/WAVE container.
"""

import base64
import struct
from typing import NamedTuple

import numpy as np

from ugc_ad_studio.exceptions import AudioDecodeError

DEFAULT_SAMPLE_RATE = 24000
WAV_HEADER_SIZE = 44

_HEADER_FORMAT = "<4sI4s4sIHHIIHH4sI"


class WavAudio(NamedTuple):
    """Parsed contents of a PCM16 WAV container."""

    sample_rate: int
    channels: int
    samples: np.ndarray  # interleaved int16


def pcm16_to_channels(pcm: bytes, channels: int = 1) -> np.ndarray:
    """Deinterleave PCM16 bytes into per-channel float32 audio.

    Args:
        pcm: Interleaved signed 16-bit little-endian samples.
        channels: Number of interleaved channels.

    Returns:
        Float32 array of shape (channels, frames) in range [-1.0, 1.0).
        Samples that do not fill a whole frame are dropped.
    """
    if len(pcm) % 2:
        raise AudioDecodeError(f"PCM16 payload has odd byte length {len(pcm)}")
    if channels <= 0:
        return np.zeros((0, 0), dtype=np.float32)

    samples = np.frombuffer(pcm, dtype="<i2")
    frames = len(samples) // channels
    interleaved = samples[: frames * channels].reshape(frames, channels)
    return interleaved.T.astype(np.float32) / np.float32(32768.0)


def _quantize(audio: np.ndarray) -> np.ndarray:
    """Asymmetric float -> int16: negatives scale by 32768, the rest by 32767."""
    clamped = np.clip(np.nan_to_num(audio.astype(np.float64), nan=0.0), -1.0, 1.0)
    scaled = np.where(clamped < 0, clamped * 32768.0, clamped * 32767.0)
    return np.trunc(scaled).astype(np.int16)


def wav_header(channels: int, sample_rate: int, data_size: int) -> bytes:
    """Build the 44-byte RIFF/WAVE header for 16-bit PCM."""
    return struct.pack(
        _HEADER_FORMAT,
        b"RIFF",
        WAV_HEADER_SIZE - 8 + data_size,
        b"WAVE",
        b"fmt ",
        16,  # fmt chunk length
        1,  # PCM format
        channels,
        sample_rate,
        sample_rate * channels * 2,  # byte rate
        channels * 2,  # block align
        16,  # bits per sample
        b"data",
        data_size,
    )


def channels_to_wav(audio: np.ndarray, sample_rate: int = DEFAULT_SAMPLE_RATE) -> bytes:
    """Encode per-channel float audio as a PCM16 WAV container.

    Args:
        audio: Float array of shape (channels, frames), or (frames,) for mono.
        sample_rate: Sample rate in Hz written to the header.

    Returns:
        WAV bytes. Zero channels or zero frames give a header-only container.
    """
    audio = np.asarray(audio, dtype=np.float32)
    if audio.ndim == 1:
        audio = audio[np.newaxis, :]
    num_channels = audio.shape[0]

    if num_channels == 0 or audio.shape[1] == 0:
        payload = b""
    else:
        payload = _quantize(audio).T.reshape(-1).astype("<i2").tobytes()
    return wav_header(num_channels, sample_rate, len(payload)) + payload


def pcm16_to_wav(
    pcm: bytes,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    channels: int = 1,
) -> bytes:
    """Convert raw interleaved PCM16 bytes into a playable WAV container."""
    return channels_to_wav(pcm16_to_channels(pcm, channels), sample_rate)


def wav_data_url(wav: bytes) -> str:
    return "data:audio/wav;base64," + base64.b64encode(wav).decode("ascii")


def read_wav(wav: bytes) -> WavAudio:
    """Parse a canonical 44-byte-header PCM16 WAV container.

    Raises:
        AudioDecodeError: If the header is missing or not 16-bit PCM.
    """
    if len(wav) < WAV_HEADER_SIZE:
        raise AudioDecodeError("WAV data shorter than header")

    (riff, _, wave_tag, fmt, fmt_size, audio_format, channels, sample_rate,
     _, _, bits, data_tag, data_size) = struct.unpack_from(_HEADER_FORMAT, wav)
    if (riff, wave_tag, fmt, data_tag) != (b"RIFF", b"WAVE", b"fmt ", b"data"):
        raise AudioDecodeError("Not a canonical RIFF/WAVE container")
    if fmt_size != 16 or audio_format != 1 or bits != 16:
        raise AudioDecodeError("Only 16-bit PCM WAV is supported")

    payload = wav[WAV_HEADER_SIZE:WAV_HEADER_SIZE + data_size]
    if len(payload) % 2:
        raise AudioDecodeError("WAV payload has odd byte length")
    samples = np.frombuffer(payload, dtype="<i2").astype(np.int16)
    return WavAudio(sample_rate=sample_rate, channels=channels, samples=samples)
