from pathlib import Path

import av
import pytest

from pes_extractor.configs import Settings
from pes_extractor.demuxer.elementary_muxer import MuxError
from pes_extractor.processing import (
    BatchSummary,
    ProcessingResult,
    extract_file,
    output_paths,
    process_file,
    process_files,
)

VIDEO_PAYLOAD = b"\x00\x00\x00\x01\x67\x42\xc0\x1e" + b"\x00\x00\x01\x65\x88\x84\x21\xa0"
AUDIO_PAYLOAD = b"\xd5\x55" * 80


@pytest.fixture
def config():
    return Settings(_env_file=None)


@pytest.fixture
def av_capture(tmp_path, video_packet, audio_packet) -> Path:
    path = tmp_path / "205414-205521.pes"
    path.write_bytes(video_packet(VIDEO_PAYLOAD) + audio_packet(AUDIO_PAYLOAD) + video_packet(VIDEO_PAYLOAD))
    return path


@pytest.fixture
def video_only_capture(tmp_path, video_packet) -> Path:
    path = tmp_path / "video_only.pes"
    path.write_bytes(video_packet(VIDEO_PAYLOAD) * 3)
    return path


@pytest.fixture
def audio_only_capture(tmp_path, audio_packet) -> Path:
    path = tmp_path / "audio_only.pes"
    path.write_bytes(audio_packet(AUDIO_PAYLOAD) * 2)
    return path


def test_output_paths_next_to_input(config):
    paths = output_paths("/captures/205414-205521.pes", config)

    assert paths.video == Path("/captures/205414-205521_complete.h264")
    assert paths.audio == Path("/captures/205414-205521_complete.alaw")
    assert paths.container == Path("/captures/205414-205521_complete.mov")


def test_output_paths_honours_output_dir(tmp_path):
    config = Settings(_env_file=None, output_dir=str(tmp_path / "out"), output_suffix="")
    paths = output_paths("/captures/cam.01.pes", config)

    assert paths.container == tmp_path / "out" / "cam.01.mov"
    assert paths.video == tmp_path / "out" / "cam.01.h264"


def test_extract_file_writes_streams(av_capture, tmp_path, config):
    video_path = tmp_path / "v.h264"
    audio_path = tmp_path / "a.alaw"
    result = extract_file(av_capture, video_path, audio_path, config)

    assert video_path.read_bytes() == VIDEO_PAYLOAD * 2
    assert audio_path.read_bytes() == AUDIO_PAYLOAD
    assert result.video_packets == 2
    assert result.audio_packets == 1


def test_extract_file_skips_empty_audio(video_only_capture, tmp_path, config):
    audio_path = tmp_path / "a.alaw"
    extract_file(video_only_capture, tmp_path / "v.h264", audio_path, config)

    assert not audio_path.exists()


def test_process_file_video_and_audio(av_capture, fake_muxer, config):
    result = process_file(av_capture, muxer=fake_muxer, config=config)

    assert result.success
    assert result.error_message == ""
    assert result.video_bytes == len(VIDEO_PAYLOAD) * 2
    assert result.audio_bytes == len(AUDIO_PAYLOAD)
    assert result.stream_layout == "video+audio"
    assert result.output_file.endswith("205414-205521_complete.mov")
    assert result.output_file_size == 64

    (call,) = fake_muxer.calls
    assert call["video_data"] == VIDEO_PAYLOAD * 2
    assert call["audio_data"] == AUDIO_PAYLOAD
    assert call["container_format"] == "mov"
    assert call["sample_rate"] == 8000
    assert call["channel_layout"] == "mono"
    assert call["frame_rate"] == 25

    # Intermediate streams are removed after a successful mux
    assert not call["video_path"].exists()
    assert not call["audio_path"].exists()
    assert call["output_path"].exists()


def test_process_file_video_only(video_only_capture, fake_muxer, config):
    result = process_file(video_only_capture, muxer=fake_muxer, config=config)

    assert result.success
    assert result.audio_bytes == 0
    assert result.stream_layout == "video-only"
    (call,) = fake_muxer.calls
    assert call["audio_path"] is None
    assert not output_paths(video_only_capture, config).audio.exists()


def test_process_file_without_video_fails(audio_only_capture, fake_muxer, config):
    result = process_file(audio_only_capture, muxer=fake_muxer, config=config)

    assert not result.success
    assert "Video stream not detected" in result.error_message
    assert result.audio_bytes == len(AUDIO_PAYLOAD) * 2
    assert fake_muxer.calls == []
    paths = output_paths(audio_only_capture, config)
    assert not paths.video.exists()
    assert not paths.audio.exists()


def test_process_file_missing_input(tmp_path, fake_muxer, config):
    result = process_file(tmp_path / "missing.pes", muxer=fake_muxer, config=config)

    assert not result.success
    assert result.error_message == "File not found"
    assert fake_muxer.calls == []


def test_process_file_mux_failure_keeps_streams(av_capture, config):
    def failing_muxer(*args, **kwargs):
        raise MuxError("Invalid data found when processing input")

    result = process_file(av_capture, muxer=failing_muxer, config=config)

    assert not result.success
    assert result.error_message.startswith("Mux failed:")
    paths = output_paths(av_capture, config)
    assert paths.video.exists()
    assert paths.audio.exists()


def test_process_file_keeps_streams_when_configured(av_capture, fake_muxer):
    config = Settings(_env_file=None, keep_elementary_streams=True)
    result = process_file(av_capture, muxer=fake_muxer, config=config)

    assert result.success
    paths = output_paths(av_capture, config)
    assert paths.video.read_bytes() == VIDEO_PAYLOAD * 2
    assert paths.audio.read_bytes() == AUDIO_PAYLOAD


def test_process_file_uses_module_muxer_by_default(av_capture, fake_muxer, monkeypatch, config):
    monkeypatch.setattr("pes_extractor.processing.mux_elementary_streams", fake_muxer)
    result = process_file(av_capture, config=config)

    assert result.success
    assert len(fake_muxer.calls) == 1


def test_process_files_continues_after_failure(av_capture, audio_only_capture, video_only_capture, fake_muxer, config):
    results = process_files([av_capture, audio_only_capture, video_only_capture], muxer=fake_muxer, config=config)

    assert [r.success for r in results] == [True, False, True]
    assert len(fake_muxer.calls) == 2


def test_process_files_survives_unexpected_muxer_error(av_capture, video_only_capture, fake_muxer, config):
    def muxer(video_path, output_path, audio_path=None, **kwargs):
        if audio_path is not None:
            raise ValueError("unsupported codec")
        fake_muxer(video_path, output_path, audio_path, **kwargs)

    results = process_files([av_capture, video_only_capture], muxer=muxer, config=config)

    assert [r.success for r in results] == [False, True]
    assert "unsupported codec" in results[0].error_message
    assert len(fake_muxer.calls) == 1


def test_process_file_with_real_muxer(tmp_path, h264_file, video_packet, audio_packet, config):
    h264_data = h264_file.read_bytes()
    chunks = [h264_data[i : i + 512] for i in range(0, len(h264_data), 512)]
    capture = tmp_path / "camera.pes"
    capture.write_bytes(b"".join(video_packet(chunk) + audio_packet(b"\xd5" * 320) for chunk in chunks))

    result = process_file(capture, config=config)

    assert result.success, result.error_message
    assert result.video_bytes == len(h264_data)
    assert result.stream_layout == "video+audio"
    with av.open(result.output_file) as container:
        assert [s.codec_context.name for s in container.streams.video] == ["h264"]
        assert [s.codec_context.name for s in container.streams.audio] == ["pcm_alaw"]


def test_batch_summary_from_results():
    results = [
        ProcessingResult("a.pes", "a.mov", True, video_bytes=1000, audio_bytes=200, output_file_size=1500),
        ProcessingResult("b.pes", "b.mov", True, video_bytes=3000, output_file_size=3100),
        ProcessingResult("c.pes", "c.mov", False, "Video stream not detected", audio_bytes=50),
    ]
    summary = BatchSummary.from_results(results)

    assert summary.total == 3
    assert summary.succeeded == 2
    assert summary.failed == 1
    assert not summary.all_succeeded
    assert summary.total_video_bytes == 4000
    assert summary.total_audio_bytes == 200
    assert summary.total_output_bytes == 4600
    assert summary.video_audio_files == 1
    assert summary.video_only_files == 1
    assert [f.input_file for f in summary.failures] == ["c.pes"]


def test_batch_summary_empty():
    summary = BatchSummary.from_results([])
    assert summary.total == 0
    assert summary.all_succeeded
