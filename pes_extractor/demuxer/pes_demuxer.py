"""
Single-pass PES demuxer.

Walks a fully loaded capture buffer once, front to back, and splits it into
an H.264 Annex B video stream and a raw A-law audio stream.

Architecture:
  bytes -> find_start_code -> parse_basic_header -> classify
        -> parse_header / resolve_payload_end -> StreamAccumulator

Per packet the cursor moves Searching -> Classified -> PayloadResolved ->
Advanced and always ends strictly past the packet start, so the scan cannot
stall. Malformed packets (truncated headers, missing next boundary) are
absorbed locally; only an empty video stream is reported as a failure, via
``DemuxResult.require_video()``.

Usage:
    result = PESDemuxer().demux(data).require_video()
    write(result.video)
    if result.has_audio:
        write(result.audio)
"""

import logging
from dataclasses import dataclass, field

from pes_extractor.const import MINIMUM_PACKET_SIZE, PES_BASIC_HEADER_LENGTH
from pes_extractor.demuxer.pes_parser import (
    PacketClass,
    PESError,
    TruncatedHeaderError,
    classify,
    find_start_code,
    other_packet_end,
    parse_basic_header,
    parse_header,
    resolve_payload_end,
)

logger = logging.getLogger(__name__)


class NoVideoDetectedError(PESError):
    """The whole capture was scanned without extracting any video bytes."""

    def __init__(self, video_bytes: int, audio_bytes: int):
        self.video_bytes = video_bytes
        self.audio_bytes = audio_bytes
        super().__init__(f"Video stream not detected (video: {video_bytes:,}B, audio: {audio_bytes:,}B)")


@dataclass(slots=True)
class PacketRecord:
    """Byte span of one recognised PES packet."""

    start: int
    payload_start: int
    end: int  # Exclusive, clamped to the buffer length
    packet_class: PacketClass
    truncated: bool = False

    @property
    def payload_size(self) -> int:
        if self.truncated or self.packet_class is PacketClass.OTHER:
            return 0
        return self.end - self.payload_start


class StreamAccumulator:
    """
    Append-only byte buffer for one elementary stream.

    Payloads are appended in input order; the buffer length only grows.
    """

    def __init__(self, packet_class: PacketClass) -> None:
        self.packet_class = packet_class
        self.packet_count: int = 0
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def append(self, payload: bytes | memoryview) -> int:
        """Add one packet's payload and return its size."""
        self._buffer += payload
        self.packet_count += 1
        return len(payload)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


@dataclass
class DemuxResult:
    """Elementary streams and counters produced by one demux run."""

    video: bytes = b""
    audio: bytes = b""
    video_packets: int = 0
    audio_packets: int = 0
    other_packets: int = 0
    truncated_packets: int = 0
    first_packet_offset: int | None = None
    packets: list[PacketRecord] = field(default_factory=list)  # Only filled when record_packets=True

    @property
    def has_video(self) -> bool:
        return len(self.video) > 0

    @property
    def has_audio(self) -> bool:
        """Audio is only emitted when at least one audio byte was extracted."""
        return len(self.audio) > 0

    def require_video(self) -> "DemuxResult":
        """Return self, or raise NoVideoDetectedError if no video was extracted."""
        if not self.has_video:
            raise NoVideoDetectedError(len(self.video), len(self.audio))
        return self


class PESDemuxer:
    """
    Demultiplexes a raw PES capture into video and audio elementary streams.

    The demuxer keeps no state between runs; calling ``demux`` twice on the
    same data yields identical results.
    """

    def __init__(self, debug_packet_count: int = 5, record_packets: bool = False) -> None:
        """
        Args:
            debug_packet_count: Number of leading packets per stream logged
                individually at DEBUG level.
            record_packets: Keep a PacketRecord for every recognised packet
                in ``DemuxResult.packets``.
        """
        self.debug_packet_count = debug_packet_count
        self.record_packets = record_packets

    def demux(self, data: bytes | bytearray | memoryview) -> DemuxResult:
        if isinstance(data, memoryview):
            data = data.tobytes()

        size = len(data)
        view = memoryview(data)
        video = StreamAccumulator(PacketClass.VIDEO)
        audio = StreamAccumulator(PacketClass.AUDIO)
        result = DemuxResult()

        cursor = 0
        limit = size - MINIMUM_PACKET_SIZE
        while cursor < limit:
            # Searching
            packet_start = find_start_code(data, cursor)
            if packet_start is None or packet_start >= limit:
                break
            if result.first_packet_offset is None:
                result.first_packet_offset = packet_start

            # Classified
            stream_id, packet_length = parse_basic_header(data, packet_start)
            packet_class = classify(stream_id)

            if packet_class is PacketClass.OTHER:
                next_cursor = other_packet_end(data, packet_start, packet_length)
                result.other_packets += 1
                self._record(
                    result,
                    PacketRecord(
                        start=packet_start,
                        payload_start=packet_start + PES_BASIC_HEADER_LENGTH,
                        end=min(next_cursor, size),
                        packet_class=packet_class,
                    ),
                )
            else:
                accumulator = video if packet_class is PacketClass.VIDEO else audio
                next_cursor = self._extract_payload(data, view, packet_start, accumulator, result)

            # Advanced
            cursor = next_cursor

        result.video = video.getvalue()
        result.audio = audio.getvalue()
        result.video_packets = video.packet_count
        result.audio_packets = audio.packet_count
        self._log_summary(result)
        return result

    def _extract_payload(
        self,
        data: bytes | bytearray,
        view: memoryview,
        packet_start: int,
        accumulator: StreamAccumulator,
        result: DemuxResult,
    ) -> int:
        """Copy one video/audio payload into its accumulator and return the next cursor."""
        try:
            header = parse_header(data, packet_start)
        except TruncatedHeaderError as e:
            logger.debug("%s, skipping %d bytes", e, PES_BASIC_HEADER_LENGTH)
            result.truncated_packets += 1
            next_cursor = packet_start + PES_BASIC_HEADER_LENGTH
            self._record(
                result,
                PacketRecord(
                    start=packet_start,
                    payload_start=next_cursor,
                    end=next_cursor,
                    packet_class=accumulator.packet_class,
                    truncated=True,
                ),
            )
            return next_cursor

        # PayloadResolved
        payload_end = resolve_payload_end(data, header.payload_start)
        payload_size = accumulator.append(view[header.payload_start : payload_end])

        if accumulator.packet_count <= self.debug_packet_count:
            logger.debug(
                "%s packet #%d at %d: %s bytes",
                accumulator.packet_class.value.capitalize(),
                accumulator.packet_count,
                packet_start,
                f"{payload_size:,}",
            )

        self._record(
            result,
            PacketRecord(
                start=packet_start,
                payload_start=header.payload_start,
                end=payload_end,
                packet_class=accumulator.packet_class,
            ),
        )
        return payload_end

    def _record(self, result: DemuxResult, record: PacketRecord) -> None:
        if self.record_packets:
            result.packets.append(record)

    @staticmethod
    def _log_summary(result: DemuxResult) -> None:
        logger.info(f"Video: {result.video_packets:,} packets ({len(result.video):,} bytes)")
        if result.has_audio:
            logger.info(f"Audio: {result.audio_packets:,} packets ({len(result.audio):,} bytes)")
        else:
            logger.info("Audio: none (no audio stream detected)")
        if result.truncated_packets:
            logger.warning(f"Skipped {result.truncated_packets} packet(s) with a truncated header")
