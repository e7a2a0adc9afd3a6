"""Tests for the export coordinator lifecycle."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from ffmpeg_exporter.exceptions import EncoderProcessError, InvalidExporterStateError
from ffmpeg_exporter.render.models import ExporterState, PartialRenderResult, RenderResult


@pytest.fixture
def stages():
    return []


class TestVideoLifecycle:
    @pytest.mark.asyncio
    async def test_start_feed_end(self, make_exporter, stages):
        exporter = make_exporter()
        exporter.set_progress_callback(stages.append)

        await exporter.start()
        assert exporter.state == ExporterState.RUNNING
        assert exporter.settings.scratch_dir.is_dir()
        assert exporter.settings.output_dir.is_dir()

        exporter.feed(b"frame-0")
        exporter.handle_frame("data:image/png;base64,ZnJhbWUtMQ==")
        await exporter.end(RenderResult.SUCCESS)

        assert exporter.state == ExporterState.COMPLETED
        assert exporter.encoder.frames == [b"frame-0", b"frame-1"]
        assert stages == ["started", "completed"]

    @pytest.mark.asyncio
    async def test_feed_before_start_rejected(self, make_exporter):
        exporter = make_exporter()

        with pytest.raises(InvalidExporterStateError):
            exporter.feed(b"frame")

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self, make_exporter):
        exporter = make_exporter()
        await exporter.start()

        with pytest.raises(InvalidExporterStateError):
            await exporter.start()
        await exporter.abort()

    @pytest.mark.asyncio
    async def test_start_failure_marks_failed(self, make_exporter, stages):
        exporter = make_exporter()
        exporter.set_progress_callback(stages.append)
        exporter.encoder.start_error = FileNotFoundError("ffmpeg")

        with pytest.raises(FileNotFoundError):
            await exporter.start()

        assert exporter.state == ExporterState.FAILED
        assert stages == ["failed"]

    @pytest.mark.asyncio
    async def test_encoder_failure_on_success_is_raised(self, make_exporter):
        exporter = make_exporter()
        await exporter.start()
        exporter.encoder.fail_with = EncoderProcessError("Video encoder exit code 1", returncode=1)

        with pytest.raises(EncoderProcessError):
            await exporter.end(RenderResult.SUCCESS)

        assert exporter.state == ExporterState.FAILED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("result", [RenderResult.ERROR, RenderResult.ABORTED])
    async def test_non_success_end_kills_quietly(self, make_exporter, result):
        exporter = make_exporter()
        await exporter.start()
        exporter.feed(b"frame")

        await exporter.end(result)

        assert exporter.encoder.killed
        assert exporter.state == ExporterState.ABORTED

    @pytest.mark.asyncio
    async def test_abort_is_idempotent(self, make_exporter, stages):
        exporter = make_exporter()
        exporter.set_progress_callback(stages.append)
        await exporter.start()

        await exporter.abort()
        await exporter.abort()
        await exporter.end(RenderResult.SUCCESS)

        assert exporter.state == ExporterState.ABORTED
        assert stages == ["started", "aborted"]

    @pytest.mark.asyncio
    async def test_abort_after_completion_keeps_state(self, make_exporter):
        exporter = make_exporter()
        await exporter.start()
        await exporter.end()

        await exporter.abort()

        assert exporter.state == ExporterState.COMPLETED

    @pytest.mark.asyncio
    async def test_abort_during_successful_end_wins(self, make_exporter, stages):
        exporter = make_exporter()
        exporter.set_progress_callback(stages.append)
        await exporter.start()
        exporter.feed(b"frame")

        results = await asyncio.gather(
            exporter.end(RenderResult.SUCCESS),
            exporter.abort(),
            return_exceptions=True,
        )

        assert results == [None, None]
        assert exporter.encoder.killed
        assert exporter.state == ExporterState.ABORTED
        assert stages == ["started", "aborted"]


class TestComposeAudio:
    @pytest.mark.asyncio
    async def test_prepares_and_mixes(self, make_exporter, snapshot, stages):
        exporter = make_exporter()
        exporter.set_progress_callback(stages.append)
        await exporter.start()
        frames = [[snapshot("a", i / 30), snapshot("b", i / 30)] for i in range(30)]
        tracks = [Path("a.wav"), Path("b.wav")]

        with patch.object(exporter.preparer, "prepare_all", new=AsyncMock(return_value=tracks)) as prep, \
                patch.object(exporter.mixer, "mix", new=AsyncMock(side_effect=lambda t, out: Path(out))) as mix:
            result = await exporter.compose_audio(frames, 0, 30)

        assets = prep.call_args.args[0]
        assert [a.key for a in assets] == ["a", "b"]
        assert prep.call_args.args[1:] == (0, 30)
        mix.assert_awaited_once_with(tracks, exporter.settings.mixed_audio_path)
        assert result == exporter.settings.mixed_audio_path
        assert stages[-1] == "audio_composed"
        await exporter.abort()

    @pytest.mark.asyncio
    async def test_no_tracks_means_no_mix(self, make_exporter, snapshot):
        exporter = make_exporter()
        await exporter.start()

        with patch.object(exporter.preparer, "prepare_all", new=AsyncMock(return_value=[])), \
                patch.object(exporter.mixer, "mix", new=AsyncMock()) as mix:
            result = await exporter.compose_audio([[snapshot("a", 0.0)]], 0, 1)

        assert result is None
        mix.assert_not_called()
        await exporter.abort()

    @pytest.mark.asyncio
    async def test_audio_disabled_skips_everything(self, make_exporter, snapshot):
        exporter = make_exporter(include_audio=False)
        await exporter.start()

        with patch.object(exporter.preparer, "prepare_all", new=AsyncMock()) as prep:
            result = await exporter.compose_audio([[snapshot("a", 0.0)]], 0, 1)

        assert result is None
        prep.assert_not_called()
        await exporter.abort()

    @pytest.mark.asyncio
    async def test_compose_before_start_rejected(self, make_exporter):
        with pytest.raises(InvalidExporterStateError):
            await make_exporter().compose_audio([], 0, 0)


class TestOutput:
    @pytest_asyncio.fixture
    async def completed(self, make_exporter):
        exporter = make_exporter()
        await exporter.start()
        await exporter.end()
        return exporter

    @pytest.mark.asyncio
    async def test_merge_without_audio_copies_video(self, completed, stages):
        completed.set_progress_callback(stages.append)

        with patch("ffmpeg_exporter.render.exporter.copy_video", new=AsyncMock()) as copy, \
                patch("ffmpeg_exporter.render.exporter.merge_audio_with_video", new=AsyncMock()) as merge:
            output = await completed.merge_final()

        assert output == completed.settings.output_dir / "test-job.mp4"
        copy.assert_awaited_once_with(completed.settings.visuals_path, output)
        merge.assert_not_called()
        assert stages == ["merged"]

    @pytest.mark.asyncio
    async def test_merge_with_audio(self, completed):
        completed.mixed_audio = completed.settings.mixed_audio_path

        with patch("ffmpeg_exporter.render.exporter.merge_audio_with_video", new=AsyncMock()) as merge:
            await completed.merge_final()

        assert merge.call_args.args[:3] == (
            completed.settings.mixed_audio_path,
            completed.settings.visuals_path,
            completed.settings.output_path,
        )

    @pytest.mark.asyncio
    async def test_merge_while_running_rejected(self, make_exporter):
        exporter = make_exporter()
        await exporter.start()

        with pytest.raises(InvalidExporterStateError):
            await exporter.merge_final()
        await exporter.abort()

    @pytest.mark.asyncio
    async def test_partial_returns_raw_files(self, completed):
        completed.mixed_audio = completed.settings.mixed_audio_path

        result = await completed.collect_partial()

        assert result == PartialRenderResult(
            video_file=completed.settings.visuals_path,
            audio_file=completed.settings.mixed_audio_path,
        )

    @pytest.mark.asyncio
    async def test_partial_without_audio_gets_silence(self, completed, snapshot):
        with patch.object(completed.preparer, "prepare_all", new=AsyncMock(return_value=[])):
            await completed.compose_audio([[snapshot("a", 0.0)]], 30, 75)

        with patch.object(
            completed.mixer, "generate_silence", new=AsyncMock(side_effect=lambda out, d: Path(out))
        ) as silence:
            result = await completed.collect_partial()

        silence.assert_awaited_once_with(completed.settings.mixed_audio_path, 1.5)
        assert result.audio_file == completed.settings.mixed_audio_path

    @pytest.mark.asyncio
    async def test_cleanup_removes_scratch_dir(self, completed):
        (completed.settings.scratch_dir / "leftover.wav").write_bytes(b"")

        await completed.cleanup()
        await completed.cleanup()

        assert not completed.settings.scratch_dir.exists()
        assert completed.settings.output_dir.exists()
