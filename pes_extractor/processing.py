"""
Per-file extraction workflow and batch reporting.

For every capture file:
  1. Demux the PES packets into <name>_complete.h264 and (if any audio)
     <name>_complete.alaw
  2. Stream-copy both into <name>_complete.mov
  3. Delete the intermediate elementary streams unless configured to keep them

Failures never abort a batch; each file produces a ProcessingResult and the
batch ends with a summary report.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from tqdm import tqdm

from pes_extractor.configs import Settings, settings as default_settings
from pes_extractor.demuxer.elementary_muxer import MuxError, mux_elementary_streams
from pes_extractor.demuxer.pes_demuxer import DemuxResult, NoVideoDetectedError, PESDemuxer

logger = logging.getLogger(__name__)

Muxer = Callable[..., None]


@dataclass(frozen=True)
class OutputPaths:
    video: Path
    audio: Path
    container: Path


@dataclass
class ProcessingResult:
    """Outcome of processing a single capture file."""

    input_file: str
    output_file: str = ""
    success: bool = False
    error_message: str = ""
    video_bytes: int = 0
    audio_bytes: int = 0
    output_file_size: int = 0

    @property
    def stream_layout(self) -> str:
        if self.video_bytes > 0 and self.audio_bytes > 0:
            return "video+audio"
        if self.video_bytes > 0:
            return "video-only"
        return "none"


@dataclass
class BatchSummary:
    """Aggregate statistics over a batch of ProcessingResults."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    total_video_bytes: int = 0  # Successful files only
    total_audio_bytes: int = 0  # Successful files only
    total_output_bytes: int = 0
    video_audio_files: int = 0
    video_only_files: int = 0
    failures: list[ProcessingResult] = field(default_factory=list)

    @classmethod
    def from_results(cls, results: Iterable[ProcessingResult]) -> "BatchSummary":
        summary = cls()
        for result in results:
            summary.total += 1
            if not result.success:
                summary.failed += 1
                summary.failures.append(result)
                continue
            summary.succeeded += 1
            summary.total_video_bytes += result.video_bytes
            summary.total_audio_bytes += result.audio_bytes
            summary.total_output_bytes += result.output_file_size
            if result.stream_layout == "video+audio":
                summary.video_audio_files += 1
            elif result.stream_layout == "video-only":
                summary.video_only_files += 1
        return summary

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0


def output_paths(input_file: str | Path, config: Settings = default_settings) -> OutputPaths:
    """Derive the elementary stream and container paths for an input file."""
    input_path = Path(input_file)
    directory = Path(config.output_dir) if config.output_dir else input_path.parent
    base = directory / f"{input_path.stem}{config.output_suffix}"
    return OutputPaths(
        video=base.with_name(base.name + config.video_extension),
        audio=base.with_name(base.name + config.audio_extension),
        container=base.with_name(base.name + config.container_extension),
    )


def extract_file(
    input_file: str | Path,
    video_path: str | Path,
    audio_path: str | Path,
    config: Settings = default_settings,
) -> DemuxResult:
    """
    Demux a capture file and write its elementary streams.

    The video stream is always written (possibly empty); the audio stream
    only when at least one audio byte was extracted.
    """
    data = Path(input_file).read_bytes()
    result = PESDemuxer(debug_packet_count=config.debug_packet_count).demux(data)

    Path(video_path).parent.mkdir(parents=True, exist_ok=True)
    Path(video_path).write_bytes(result.video)
    logger.debug(f"Wrote {len(result.video):,} bytes to {video_path}")
    if result.has_audio:
        Path(audio_path).write_bytes(result.audio)
        logger.debug(f"Wrote {len(result.audio):,} bytes to {audio_path}")
    return result


def _remove_intermediates(paths: OutputPaths, has_audio: bool) -> None:
    paths.video.unlink(missing_ok=True)
    if has_audio:
        paths.audio.unlink(missing_ok=True)


def process_file(
    input_file: str | Path,
    muxer: Muxer | None = None,
    config: Settings = default_settings,
) -> ProcessingResult:
    """
    Extract and mux one capture file.

    Never raises for per-file problems: a missing file, a capture without
    video, I/O errors, mux failures and unexpected errors all come back as a
    failed result, so one bad file never stops a batch.
    """
    muxer = muxer or mux_elementary_streams
    result = ProcessingResult(input_file=str(input_file))
    input_path = Path(input_file)
    if not input_path.is_file():
        result.error_message = "File not found"
        logger.error(f"File not found: {input_file}")
        return result

    logger.info(f"Processing: {input_path.name}")
    paths = output_paths(input_path, config)
    result.output_file = str(paths.container)

    try:
        demuxed = extract_file(input_path, paths.video, paths.audio, config)
        result.video_bytes = len(demuxed.video)
        result.audio_bytes = len(demuxed.audio)
        demuxed.require_video()

        if demuxed.has_audio:
            logger.info(f"Muxing video ({result.video_bytes:,} bytes) and audio ({result.audio_bytes:,} bytes)")
        else:
            logger.info(f"Muxing video only ({result.video_bytes:,} bytes, no audio track)")

        muxer(
            paths.video,
            paths.container,
            paths.audio if demuxed.has_audio else None,
            container_format=config.container_format,
            frame_rate=config.video_frame_rate,
            sample_rate=config.audio_sample_rate,
            channel_layout=config.audio_channel_layout,
        )
    except NoVideoDetectedError as e:
        result.error_message = str(e)
        _remove_intermediates(paths, has_audio=True)
        logger.error(f"Failed: {input_path.name}: {e}")
        return result
    except MuxError as e:
        result.error_message = f"Mux failed: {e}"
        logger.error(f"Failed: {input_path.name}: {result.error_message}")
        return result
    except OSError as e:
        result.error_message = str(e)
        logger.exception(f"I/O error while processing {input_path.name}")
        return result
    except Exception as e:
        result.error_message = f"Unexpected error: {e}"
        logger.exception(f"Unexpected error while processing {input_path.name}")
        return result

    if not config.keep_elementary_streams:
        _remove_intermediates(paths, demuxed.has_audio)
    if paths.container.exists():
        result.output_file_size = paths.container.stat().st_size
    result.success = True
    logger.info(f"Done: {paths.container.name} ({result.output_file_size / 1024:.1f} KB)")
    return result


def process_files(
    input_files: Iterable[str | Path],
    muxer: Muxer | None = None,
    config: Settings = default_settings,
) -> list[ProcessingResult]:
    """Process every file in order, collecting one result per file."""
    input_files = list(input_files)
    logger.info(f"Files to process: {len(input_files)}")
    results = []
    for input_file in tqdm(input_files, desc="Extracting", unit="file", disable=not config.enable_progress):
        results.append(process_file(input_file, muxer=muxer, config=config))
    return results


def log_summary(summary: BatchSummary) -> None:
    """Write the final batch report."""
    logger.info("=" * 60)
    logger.info("Processing finished")
    logger.info(f"Succeeded: {summary.succeeded} file(s)")
    logger.info(f"Failed: {summary.failed} file(s)" if summary.failed else "Failed: none")
    logger.info(f"Total: {summary.total} file(s)")

    if summary.succeeded:
        logger.info(f"Total output size: {summary.total_output_bytes / 1024:.1f} KB")
        logger.info(f"Video data: {summary.total_video_bytes / 1024:.1f} KB")
        if summary.total_audio_bytes:
            logger.info(f"Audio data: {summary.total_audio_bytes / 1024:.1f} KB")
        else:
            logger.info("Audio data: none")
        if summary.video_audio_files:
            logger.info(f"Video+audio: {summary.video_audio_files} file(s)")
        if summary.video_only_files:
            logger.info(f"Video only: {summary.video_only_files} file(s)")

    for failure in summary.failures:
        logger.warning(f"Failed file {Path(failure.input_file).name}: {failure.error_message}")
    logger.info("=" * 60)
