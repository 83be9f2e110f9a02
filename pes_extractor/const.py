# PES packet layout (ISO/IEC 13818-1, 2.4.3.6)
PES_START_CODE = b"\x00\x00\x01"
PES_START_CODE_PREFIX_LENGTH = 3
PES_STREAM_ID_LENGTH = 1
PES_PACKET_LENGTH_FIELD_LENGTH = 2
PES_BASIC_HEADER_LENGTH = PES_START_CODE_PREFIX_LENGTH + PES_STREAM_ID_LENGTH + PES_PACKET_LENGTH_FIELD_LENGTH

# '10' marker + flags byte + PES_header_data_length
PES_EXTENDED_HEADER_MIN_LENGTH = 3

MINIMUM_PACKET_SIZE = PES_BASIC_HEADER_LENGTH

# Stream id assignments handled by the extractor
VIDEO_STREAM_ID = 0xE0
AUDIO_STREAM_ID_MIN = 0xC0
AUDIO_STREAM_ID_MAX = 0xDF

# Raw A-law audio carried in the capture files
ALAW_SAMPLE_RATE = 8000
ALAW_CHANNEL_LAYOUT = "mono"

# FFmpeg demuxer names for the extracted elementary streams
VIDEO_INPUT_FORMAT = "h264"
AUDIO_INPUT_FORMAT = "alaw"

# Output container; must accept both h264 and pcm_alaw without re-encoding
DEFAULT_CONTAINER_FORMAT = "mov"
DEFAULT_CONTAINER_EXTENSION = ".mov"
