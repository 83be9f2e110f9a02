from pydantic import Field
from pydantic_settings import BaseSettings

from pes_extractor.const import (
    ALAW_CHANNEL_LAYOUT,
    ALAW_SAMPLE_RATE,
    DEFAULT_CONTAINER_EXTENSION,
    DEFAULT_CONTAINER_FORMAT,
)


class Settings(BaseSettings):
    log_level: str = "INFO"  # The logging level to use.
    output_dir: str | None = None  # Directory for extracted files; None writes next to each input file.
    output_suffix: str = "_complete"  # Suffix appended to the input base name for every output file.
    container_format: str = DEFAULT_CONTAINER_FORMAT  # FFmpeg muxer for the final container; must accept pcm_alaw as-is.
    container_extension: str = DEFAULT_CONTAINER_EXTENSION  # Extension of the final container.
    video_extension: str = ".h264"  # Extension of the extracted H.264 elementary stream.
    audio_extension: str = ".alaw"  # Extension of the extracted A-law audio stream.
    keep_elementary_streams: bool = False  # Whether to keep the .h264/.alaw files after a successful mux.
    video_frame_rate: int = Field(25, gt=0)  # Frame rate assumed when raw H.264 packets carry no timestamps.
    audio_sample_rate: int = Field(ALAW_SAMPLE_RATE, gt=0)  # Sample rate of the raw A-law stream.
    audio_channel_layout: str = ALAW_CHANNEL_LAYOUT  # Channel layout of the raw A-law stream.
    debug_packet_count: int = 5  # Number of leading packets per stream logged individually.
    enable_progress: bool = False  # Whether to show a progress bar while processing a batch of files.

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
