"""
PyAV-based muxer for extracted elementary streams.

Stream-copies a raw H.264 Annex B file and an optional raw A-law file into a
single playable container (QuickTime MOV by default) using PyAV's demux/mux API
(Python bindings for FFmpeg's libavformat). Nothing is re-encoded.

The target container must accept pcm_alaw as-is. PyAV checks this with
avformat_query_codec when the stream is created: mov, nut and avi pass,
matroska and mp4 are rejected.

Architecture:
  .h264 --av.open(format="h264")--\
                                    heapq.merge by pts -> output.mux() -> .mov
  .alaw --av.open(format="alaw")--/

Raw H.264 carries no container timestamps; packets the demuxer leaves
without pts/dts are stamped from the configured frame rate so the muxer
receives a monotonic timeline.
"""

from __future__ import annotations

import heapq
import logging
from collections.abc import Iterator
from fractions import Fraction
from pathlib import Path

import av

from pes_extractor.const import (
    ALAW_CHANNEL_LAYOUT,
    ALAW_SAMPLE_RATE,
    AUDIO_INPUT_FORMAT,
    DEFAULT_CONTAINER_FORMAT,
    VIDEO_INPUT_FORMAT,
)

logger = logging.getLogger(__name__)

# Fallback when the raw demuxer does not expose a time base before the first packet
_DEFAULT_TIME_BASE = Fraction(1, 90000)


class MuxError(Exception):
    """Raised when the elementary streams cannot be written to a container."""

    pass


def _packet_time(packet: av.Packet) -> Fraction:
    return packet.pts * packet.time_base


def _video_packets(
    container: av.container.InputContainer,
    stream: av.VideoStream,
    out_stream: av.VideoStream,
    frame_rate: int,
) -> Iterator[av.Packet]:
    """Yield video packets retargeted to ``out_stream``, filling in missing timestamps."""
    time_base = stream.time_base or _DEFAULT_TIME_BASE
    frame_duration = max(1, round(1 / (Fraction(frame_rate) * time_base)))
    next_dts = 0

    for packet in container.demux(stream):
        if packet.size == 0:
            # Flush packet emitted at end of input
            continue
        if packet.dts is None:
            packet.dts = next_dts
        if packet.pts is None:
            packet.pts = packet.dts
        packet.time_base = time_base
        next_dts = packet.dts + frame_duration
        packet.stream = out_stream
        yield packet


def _audio_packets(
    container: av.container.InputContainer,
    stream: av.AudioStream,
    out_stream: av.AudioStream,
) -> Iterator[av.Packet]:
    for packet in container.demux(stream):
        if packet.size == 0 or packet.pts is None:
            continue
        packet.stream = out_stream
        yield packet


def mux_elementary_streams(
    video_path: str | Path,
    output_path: str | Path,
    audio_path: str | Path | None = None,
    *,
    container_format: str = DEFAULT_CONTAINER_FORMAT,
    frame_rate: int = 25,
    sample_rate: int = ALAW_SAMPLE_RATE,
    channel_layout: str = ALAW_CHANNEL_LAYOUT,
) -> None:
    """
    Stream-copy extracted elementary streams into a container.

    Args:
        video_path: Raw H.264 Annex B elementary stream.
        output_path: Container file to create (overwritten if present).
        audio_path: Raw A-law samples, or None for a video-only container.
        container_format: FFmpeg muxer name.
        frame_rate: Frame rate used for raw H.264 timing.
        sample_rate: Sample rate of the A-law input.
        channel_layout: Channel layout of the A-law input.

    Raises:
        MuxError: If FFmpeg fails to open, read or write any of the files.
    """
    inputs: list[av.container.InputContainer] = []
    try:
        video_in = av.open(
            str(video_path),
            format=VIDEO_INPUT_FORMAT,
            options={"framerate": str(frame_rate)},
        )
        inputs.append(video_in)

        audio_in = None
        if audio_path is not None:
            audio_in = av.open(
                str(audio_path),
                format=AUDIO_INPUT_FORMAT,
                options={"sample_rate": str(sample_rate), "ch_layout": channel_layout},
            )
            inputs.append(audio_in)

        if not video_in.streams.video:
            raise MuxError(f"No H.264 stream found in {video_path}")

        with av.open(str(output_path), mode="w", format=container_format) as output:
            video_stream = video_in.streams.video[0]
            video_out = output.add_stream_from_template(video_stream)
            sources = [_video_packets(video_in, video_stream, video_out, frame_rate)]

            if audio_in is not None and audio_in.streams.audio:
                audio_stream = audio_in.streams.audio[0]
                audio_out = output.add_stream_from_template(audio_stream)
                sources.append(_audio_packets(audio_in, audio_stream, audio_out))

            muxed = 0
            for packet in heapq.merge(*sources, key=_packet_time):
                output.mux(packet)
                muxed += 1

        logger.info(
            "[elementary_muxer] Wrote %d packets (%s) to %s",
            muxed,
            "video+audio" if len(sources) > 1 else "video only",
            output_path,
        )
    except av.error.FFmpegError as e:
        raise MuxError(f"FFmpeg failed to mux {video_path} into {output_path}: {e}") from e
    except (ValueError, TypeError) as e:
        # Raised by PyAV while setting up streams, e.g. an unsupported codec for the format
        raise MuxError(f"Cannot mux {video_path} into {container_format}: {e}") from e
    finally:
        for container in inputs:
            container.close()
