"""Frame-level tracing.

A frame is traced row by row, serially or over a process pool. Every ray of
a frame sees the same immutable ``FrameParameters`` snapshot.
"""
import logging
import time
from multiprocessing import Pool, cpu_count

import numpy as np

from kerrlens.tracer import trace

logger = logging.getLogger(__name__)


def map_rows(func, jobs, workers=1):
    """Yield ``func(job)`` results; unordered when a pool is used."""
    if workers is None:
        workers = cpu_count()
    if workers <= 1 or len(jobs) <= 1:
        for job in jobs:
            yield func(job)
        return
    with Pool(processes=min(workers, len(jobs))) as pool:
        yield from pool.imap_unordered(func, jobs)


def _trace_row(args):
    j, origins, directions, params = args
    return j, [trace(o, d, params.config, params.quality, params.settings)
               for o, d in zip(origins, directions)]


def trace_frame(origins, directions, params, workers=1):
    """Trace an (H, W) grid of rays. Returns H rows of ``TraceOutcome``.

    ``origins`` broadcasts against ``directions`` (shape (H, W, 3)), so a
    single camera position can be passed as a 3-vector.
    """
    directions = np.asarray(directions, dtype=float)
    if directions.ndim != 3 or directions.shape[2] != 3:
        raise ValueError(f"directions must have shape (H, W, 3), got {directions.shape}")
    origins = np.broadcast_to(np.asarray(origins, dtype=float), directions.shape)

    jobs = [(j, origins[j], directions[j], params) for j in range(directions.shape[0])]
    rows = [None] * len(jobs)
    start = time.perf_counter()
    for j, row in map_rows(_trace_row, jobs, workers):
        rows[j] = row
    logger.info("Traced %d rays (%s) in %.2fs", directions.shape[0] * directions.shape[1],
                params.quality.value, time.perf_counter() - start)
    return rows
