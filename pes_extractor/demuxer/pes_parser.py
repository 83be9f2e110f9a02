"""
Pure Python PES packet parser.

Building blocks for demultiplexing a raw capture made of concatenated PES
packets (ISO/IEC 13818-1, 2.4.3.6):

  packet_start_code_prefix   24 bits  0x000001
  stream_id                   8 bits
  PES_packet_length          16 bits  (0 = unbounded, payload runs to the next packet)
  optional PES header         3 bytes + PES_header_data_length
  PES_packet_data_byte       ...

The 0x000001 prefix is also the Annex B start code of every H.264 NAL unit
inside a video payload, so a bare start code scan cannot find packet
boundaries. ``resolve_payload_end`` only accepts a start code whose next byte
is a video or audio stream id. NAL header bytes have forbidden_zero_bit
cleared (< 0x80) and never collide with 0xC0-0xDF or 0xE0.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from pes_extractor.const import (
    AUDIO_STREAM_ID_MAX,
    AUDIO_STREAM_ID_MIN,
    PES_BASIC_HEADER_LENGTH,
    PES_EXTENDED_HEADER_MIN_LENGTH,
    PES_START_CODE,
    PES_START_CODE_PREFIX_LENGTH,
    VIDEO_STREAM_ID,
)

logger = logging.getLogger(__name__)


class PESError(Exception):
    """Base exception for PES parsing errors."""

    pass


class TruncatedHeaderError(PESError):
    """Fewer bytes remain than the PES header needs."""

    def __init__(self, packet_start: int, available: int):
        self.packet_start = packet_start
        self.available = available
        super().__init__(
            f"Truncated PES header at offset {packet_start}: "
            f"{available} bytes left, {PES_BASIC_HEADER_LENGTH + PES_EXTENDED_HEADER_MIN_LENGTH} required"
        )


class PacketClass(Enum):
    VIDEO = "video"
    AUDIO = "audio"
    OTHER = "other"


@dataclass(slots=True)
class PESPacketHeader:
    """Decoded PES header of a single packet."""

    packet_start: int
    stream_id: int
    packet_length: int  # Declared PES_packet_length, 0 = unbounded
    header_data_length: int | None = None  # Only read for video/audio packets
    payload_start: int = 0  # Absolute offset of the first payload byte

    @property
    def packet_class(self) -> PacketClass:
        return classify(self.stream_id)


# =============================================================================
# Start code scanning and classification
# =============================================================================


def find_start_code(data: bytes | bytearray, start: int = 0) -> int | None:
    """
    Find the next 0x000001 prefix at or after ``start``.

    Returns:
        Offset of the first prefix byte, or None if the data is exhausted.
    """
    if start < 0:
        start = 0
    if len(data) - start < PES_START_CODE_PREFIX_LENGTH:
        return None
    pos = data.find(PES_START_CODE, start)
    return pos if pos != -1 else None


def classify(stream_id: int) -> PacketClass:
    """Map a PES stream_id to the stream it carries."""
    if stream_id == VIDEO_STREAM_ID:
        return PacketClass.VIDEO
    if AUDIO_STREAM_ID_MIN <= stream_id <= AUDIO_STREAM_ID_MAX:
        return PacketClass.AUDIO
    return PacketClass.OTHER


# =============================================================================
# Header parsing
# =============================================================================


def parse_basic_header(data: bytes | bytearray, packet_start: int) -> tuple[int, int]:
    """
    Read stream_id and PES_packet_length from the 6-byte basic header.

    Returns:
        (stream_id, packet_length)
    """
    if packet_start + PES_BASIC_HEADER_LENGTH > len(data):
        raise TruncatedHeaderError(packet_start, len(data) - packet_start)

    pos = packet_start + PES_START_CODE_PREFIX_LENGTH
    stream_id = data[pos]
    packet_length = (data[pos + 1] << 8) | data[pos + 2]
    return stream_id, packet_length


def parse_header(data: bytes | bytearray, packet_start: int) -> PESPacketHeader:
    """
    Decode the PES header at ``packet_start`` and locate the payload.

    Video and audio packets carry the optional PES header; its third byte is
    PES_header_data_length, the number of header bytes (PTS/DTS etc.) still
    preceding the elementary stream data. Other packets are returned with
    the payload starting right after the basic header.

    Raises:
        TruncatedHeaderError: If a video/audio packet has fewer than
            basic + extended-minimum header bytes left. The caller should
            skip PES_BASIC_HEADER_LENGTH bytes and resume scanning.
    """
    stream_id, packet_length = parse_basic_header(data, packet_start)
    header = PESPacketHeader(
        packet_start=packet_start,
        stream_id=stream_id,
        packet_length=packet_length,
        payload_start=packet_start + PES_BASIC_HEADER_LENGTH,
    )
    if header.packet_class is PacketClass.OTHER:
        return header

    extended_start = packet_start + PES_BASIC_HEADER_LENGTH
    if extended_start + PES_EXTENDED_HEADER_MIN_LENGTH > len(data):
        raise TruncatedHeaderError(packet_start, len(data) - packet_start)

    header.header_data_length = data[extended_start + 2]
    payload_start = extended_start + PES_EXTENDED_HEADER_MIN_LENGTH + header.header_data_length
    header.payload_start = min(payload_start, len(data))
    return header


# =============================================================================
# Payload boundary resolution
# =============================================================================


def find_next_packet(data: bytes | bytearray, start: int) -> int | None:
    """
    Find the next start code that begins a video or audio packet.

    Candidates followed by any other byte (in-payload NAL start codes,
    unhandled stream ids) are skipped.
    """
    pos = start
    size = len(data)
    while True:
        candidate = find_start_code(data, pos)
        # The stream_id byte after the prefix must be inside the buffer
        if candidate is None or candidate + PES_START_CODE_PREFIX_LENGTH >= size:
            return None
        if classify(data[candidate + PES_START_CODE_PREFIX_LENGTH]) is not PacketClass.OTHER:
            return candidate
        pos = candidate + 1


def resolve_payload_end(data: bytes | bytearray, payload_start: int) -> int:
    """
    Return the exclusive end of a payload starting at ``payload_start``.

    PES_packet_length is not trusted here: captures commonly leave it at 0.
    The payload runs up to the next validated video/audio packet, or to the
    end of the data for the final packet.
    """
    next_packet = find_next_packet(data, payload_start)
    if next_packet is None:
        return len(data)
    return next_packet


def other_packet_end(data: bytes | bytearray, packet_start: int, packet_length: int) -> int:
    """
    Return where scanning resumes after a packet of an unhandled stream.

    A declared length is skipped as-is; an unbounded packet falls back to
    the boundary scan.
    """
    if packet_length > 0:
        return packet_start + PES_BASIC_HEADER_LENGTH + packet_length
    return resolve_payload_end(data, packet_start + PES_BASIC_HEADER_LENGTH)
