"""
Pytest configuration and PES packet builders.

Captures are assembled in memory from hand-built packets so every test can
state exactly which bytes belong to which payload.
"""

from pathlib import Path

import av
import pytest

from pes_extractor.const import AUDIO_STREAM_ID_MIN, VIDEO_STREAM_ID


def build_pes_packet(
    stream_id: int,
    payload: bytes = b"",
    header_data: bytes = b"",
    packet_length: int = 0,
    extended_header: bool | None = None,
) -> bytes:
    """
    Build one PES packet.

    Video and audio packets get the optional PES header ('10' marker byte,
    flags byte, PES_header_data_length) followed by ``header_data``.
    """
    if extended_header is None:
        extended_header = stream_id == VIDEO_STREAM_ID or 0xC0 <= stream_id <= 0xDF
    packet = bytearray(b"\x00\x00\x01")
    packet.append(stream_id)
    packet += packet_length.to_bytes(2, "big")
    if extended_header:
        packet += bytes([0x80, 0x80 if header_data else 0x00, len(header_data)])
        packet += header_data
    packet += payload
    return bytes(packet)


@pytest.fixture
def make_pes_packet():
    """
    Factory fixture returning ``build_pes_packet``.

    Usage:
        def test_something(make_pes_packet):
            data = make_pes_packet(0xE0, b"payload")
    """
    return build_pes_packet


@pytest.fixture
def video_packet():
    def _video(payload: bytes, header_data: bytes = b"\x21\x00\x01\x00\x01") -> bytes:
        return build_pes_packet(VIDEO_STREAM_ID, payload, header_data)

    return _video


@pytest.fixture
def audio_packet():
    def _audio(
        payload: bytes,
        stream_id: int = AUDIO_STREAM_ID_MIN,
        header_data: bytes = b"\x21\x00\x01\x00\x01",
    ) -> bytes:
        # Audio packets declare their length; the demuxer must not rely on it
        return build_pes_packet(stream_id, payload, header_data, packet_length=3 + len(header_data) + len(payload))

    return _audio


class FakeMuxer:
    """Records mux calls and writes a placeholder container."""

    def __init__(self) -> None:
        self.calls: list[dict] = []

    def __call__(self, video_path, output_path, audio_path=None, **kwargs) -> None:
        self.calls.append(
            {
                "video_path": Path(video_path),
                "output_path": Path(output_path),
                "audio_path": Path(audio_path) if audio_path is not None else None,
                "video_data": Path(video_path).read_bytes(),
                "audio_data": Path(audio_path).read_bytes() if audio_path is not None else None,
                **kwargs,
            }
        )
        Path(output_path).write_bytes(b"\x1a\x45\xdf\xa3" + b"\x00" * 60)


@pytest.fixture
def fake_muxer():
    return FakeMuxer()


def encode_h264_clip(path: Path, frame_count: int = 10, size: int = 64) -> Path:
    """Encode a short raw Annex B H.264 stream with PyAV, skipping the test without libx264."""
    try:
        av.codec.Codec("libx264", "w")
    except (av.error.FFmpegError, ValueError):
        pytest.skip("libx264 encoder not available")

    with av.open(str(path), mode="w", format="h264") as output:
        stream = output.add_stream("libx264", rate=25)
        stream.width = size
        stream.height = size
        stream.pix_fmt = "yuv420p"
        for index in range(frame_count):
            frame = av.VideoFrame(size, size, "yuv420p")
            frame.pts = index
            for packet in stream.encode(frame):
                output.mux(packet)
        for packet in stream.encode():
            output.mux(packet)
    return path


@pytest.fixture
def h264_file(tmp_path) -> Path:
    return encode_h264_clip(tmp_path / "clip.h264")


@pytest.fixture
def alaw_file(tmp_path) -> Path:
    path = tmp_path / "clip.alaw"
    # 0.4 s of A-law silence at 8 kHz
    path.write_bytes(b"\xd5" * 3200)
    return path
