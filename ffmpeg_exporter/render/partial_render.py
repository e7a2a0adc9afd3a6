"""Frame-range planning for distributed (partial) renders."""

from ffmpeg_exporter.exceptions import WorkerRangeError
from ffmpeg_exporter.render.models import WorkerShard


def plan_worker_shard(total_frames: int, worker_id: int, num_workers: int) -> WorkerShard:
    """
    Return the contiguous frame range owned by one worker.

    ``[0, total_frames)`` is split into ``num_workers`` gap-free,
    non-overlapping ranges. When the split is uneven the first
    ``total_frames % num_workers`` workers take one extra frame each.

    Raises:
        WorkerRangeError: If num_workers < 1, worker_id is outside
            [0, num_workers) or total_frames is negative
    """
    if num_workers < 1:
        raise WorkerRangeError(f"num_workers must be at least 1, got {num_workers}")
    if not 0 <= worker_id < num_workers:
        raise WorkerRangeError(
            f"worker_id {worker_id} out of range for {num_workers} workers",
            worker_id=worker_id,
        )
    if total_frames < 0:
        raise WorkerRangeError(f"total_frames must not be negative, got {total_frames}")

    base, extra = divmod(total_frames, num_workers)
    start_frame = worker_id * base + min(worker_id, extra)
    end_frame = start_frame + base + (1 if worker_id < extra else 0)
    return WorkerShard(
        worker_id=worker_id,
        num_workers=num_workers,
        start_frame=start_frame,
        end_frame=end_frame,
    )


def plan_all_shards(total_frames: int, num_workers: int) -> list[WorkerShard]:
    return [plan_worker_shard(total_frames, i, num_workers) for i in range(num_workers)]
