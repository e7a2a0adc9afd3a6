"""Tests for the audio mixer."""

from unittest.mock import AsyncMock, patch

import pytest

from ffmpeg_exporter.config import Settings
from ffmpeg_exporter.render.audio_mixer import AudioMixer


@pytest.fixture
def mixer():
    return AudioMixer(Settings(ffmpeg_path="ffmpeg"))


class TestMixFilter:
    def test_three_inputs_are_averaged(self, mixer):
        graph = mixer.build_mix_filter(3)

        assert graph.startswith("[0:a][1:a][2:a]amix=inputs=3:duration=longest:normalize=0,")
        assert graph.endswith("[out]")
        gain = float(graph.split("volume=")[1].removesuffix("[out]"))
        assert gain == pytest.approx(1 / 3)

    def test_single_input_keeps_level(self, mixer):
        assert mixer.build_mix_filter(1) == "[0:a]amix=inputs=1:duration=longest:normalize=0,volume=1.0[out]"

    def test_graph_treats_every_input_alike(self, mixer):
        graph = mixer.build_mix_filter(2)
        inputs, rest = graph.split("amix", 1)

        assert inputs == "[0:a][1:a]"
        assert "weights" not in rest
        assert "duration=longest" in rest

    def test_no_inputs_rejected(self, mixer):
        with pytest.raises(ValueError):
            mixer.build_mix_filter(0)


class TestMixCommand:
    def test_inputs_then_graph_then_output(self, mixer, tmp_path):
        tracks = [tmp_path / "a.wav", tmp_path / "b.wav"]
        out = tmp_path / "audio.wav"

        args = mixer.build_mix_command(tracks, out)

        assert args[:4] == ["-i", str(tracks[0]), "-i", str(tracks[1])]
        assert args[args.index("-map") + 1] == "[out]"
        assert args[args.index("-c:a") + 1] == "pcm_s16le"
        assert args[args.index("-ar") + 1] == "48000"
        assert args[-1] == str(out)

    def test_track_order_only_permutes_inputs(self, mixer, tmp_path):
        a, b = tmp_path / "a.wav", tmp_path / "b.wav"
        out = tmp_path / "audio.wav"

        forward = mixer.build_mix_command([a, b], out)
        backward = mixer.build_mix_command([b, a], out)

        assert forward[:4] == ["-i", str(a), "-i", str(b)]
        assert backward[:4] == ["-i", str(b), "-i", str(a)]
        assert forward[4:] == backward[4:]

    @pytest.mark.asyncio
    async def test_mix_runs_ffmpeg(self, mixer, tmp_path):
        with patch("ffmpeg_exporter.render.audio_mixer.run_ffmpeg", new=AsyncMock()) as run:
            result = await mixer.mix([tmp_path / "a.wav"], tmp_path / "audio.wav")

        assert result == tmp_path / "audio.wav"
        assert run.await_count == 1
        assert run.call_args.kwargs["ffmpeg_path"] == "ffmpeg"


class TestSilence:
    def test_stereo_silence_of_given_length(self, mixer, tmp_path):
        args = mixer.build_silence_command(tmp_path / "silence.wav", 1.5)

        assert args[:4] == ["-f", "lavfi", "-i", "anullsrc=r=48000:cl=stereo:d=1.5"]
        assert args[-1] == str(tmp_path / "silence.wav")

    def test_mono_layout(self, tmp_path):
        mixer = AudioMixer(Settings(audio_channels=1))

        args = mixer.build_silence_command(tmp_path / "silence.wav", 2.0)

        assert "cl=mono" in args[3]
