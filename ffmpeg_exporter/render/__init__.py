from ffmpeg_exporter.render.asset_timeline import resolve_asset_placements
from ffmpeg_exporter.render.audio_filters import build_atempo_filters, build_audio_filter_chain
from ffmpeg_exporter.render.audio_mixer import AudioMixer
from ffmpeg_exporter.render.audio_preparer import AudioTrackPreparer
from ffmpeg_exporter.render.exporter import FFmpegExporter
from ffmpeg_exporter.render.frame_stream import FrameStream
from ffmpeg_exporter.render.models import (
    AssetSnapshot,
    ExporterState,
    ExportSettings,
    JobIdentity,
    MediaAsset,
    PartialRenderResult,
    RenderResult,
    WorkerShard,
)
from ffmpeg_exporter.render.muxer import concatenate_media, merge_partial_renders
from ffmpeg_exporter.render.partial_render import plan_all_shards, plan_worker_shard
from ffmpeg_exporter.render.video_encoder import VideoEncoder

__all__ = [
    "AssetSnapshot",
    "AudioMixer",
    "AudioTrackPreparer",
    "ExportSettings",
    "ExporterState",
    "FFmpegExporter",
    "FrameStream",
    "JobIdentity",
    "MediaAsset",
    "PartialRenderResult",
    "RenderResult",
    "VideoEncoder",
    "WorkerShard",
    "build_atempo_filters",
    "build_audio_filter_chain",
    "concatenate_media",
    "merge_partial_renders",
    "plan_all_shards",
    "plan_worker_shard",
    "resolve_asset_placements",
]
