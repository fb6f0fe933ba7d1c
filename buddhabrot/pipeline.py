from __future__ import annotations

import os
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from tqdm import tqdm

from buddhabrot.buffer import Buffer
from buddhabrot.config import RunConfig
from buddhabrot.engine.hits import HitBuffer
from buddhabrot.engine.worker import WorkerResult, run_worker
from buddhabrot.errors import CorruptPersistedBuffer
from buddhabrot.util.logging_setup import get_logger, logging_initialiser

@dataclass
class CycleResult:
    buffers: List[HitBuffer]
    samples: int
    proposals: int
    elapsed: float

def buffer_path(output_dir: str, index: int) -> str:
    return os.path.join(output_dir, f"buffer-{index}.bread")

def _empty_buffers(config: RunConfig) -> List[HitBuffer]:
    return [HitBuffer(*config.band_shape(b)) for b in config.bands]

def run_workers(
    config: RunConfig,
    *,
    log_queue=None,
    log_level: Optional[int] = None,
    inline: bool = False,
    entropy: Optional[int] = None,
) -> List[WorkerResult]:
    """Run ``config.threads`` independently seeded workers and wait for all of them."""
    seeds = np.random.SeedSequence(entropy).spawn(config.threads)
    if inline:
        return [run_worker(config, s) for s in seeds]

    initializer = initargs = None
    if log_queue is not None:
        initializer, initargs = logging_initialiser, (log_queue, log_level)
    with ProcessPoolExecutor(max_workers=config.threads, initializer=initializer, initargs=initargs or ()) as pool:
        futures = [pool.submit(run_worker, config, s) for s in seeds]
        # A failed worker re-raises here and aborts the whole cycle.
        return [f.result() for f in futures]

def merge(config: RunConfig, results: Sequence[WorkerResult]) -> CycleResult:
    buffers = _empty_buffers(config)
    for result in results:
        for merged, buf in zip(buffers, result.buffers):
            merged += buf
    return CycleResult(
        buffers=buffers,
        samples=sum(r.samples for r in results),
        proposals=sum(r.proposals for r in results),
        elapsed=max((r.elapsed for r in results), default=0.0),
    )

def persist(config: RunConfig, buffers: Sequence[HitBuffer], *, discard_corrupt: bool = False) -> List[str]:
    """Store one file per band, first adding what is on disk when ``config.keep`` is set."""
    logger = get_logger()
    os.makedirs(config.output_dir, exist_ok=True)
    paths = []
    for i, hb in enumerate(buffers):
        path = buffer_path(config.output_dir, i)
        if config.keep and os.path.exists(path):
            try:
                hb.buffer += Buffer.load(hb.width, hb.height, path)
            except CorruptPersistedBuffer as e:
                if not discard_corrupt:
                    raise
                logger.warning("Discarding corrupt buffer %s (expected %s bytes, found %s)",
                               e.path, e.expected, e.actual)
        hb.buffer.store(path)
        paths.append(path)
    return paths

def band_stats(buffers: Sequence[HitBuffer], duration: Optional[float] = None) -> List[Dict[str, float]]:
    out = []
    for hb in buffers:
        samples = hb.buffer.total()
        pixels = hb.width * hb.height
        row = {"samples": samples, "per_pixel": samples / pixels}
        if duration:
            row["per_second"] = samples / duration
            row["per_pixel_second"] = samples / pixels / duration
        out.append(row)
    return out

def log_stats(buffers: Sequence[HitBuffer], duration: Optional[float] = None) -> None:
    logger = get_logger()
    for i, s in enumerate(band_stats(buffers, duration)):
        if duration:
            logger.info("Buffer %s has %s samples, %.2f samples/s, %.2f samples/pixel, %.4f samples/pixel/s",
                        i, s["samples"], s["per_second"], s["per_pixel"], s["per_pixel_second"])
        else:
            logger.info("Buffer %s has %s samples, %.2f samples/pixel", i, s["samples"], s["per_pixel"])

def run_cycle(
    config: RunConfig,
    *,
    log_queue=None,
    log_level: Optional[int] = None,
    inline: bool = False,
    discard_corrupt: bool = False,
) -> CycleResult:
    logger = get_logger()
    logger.info("Cycle start threads=%s duration=%ss bands=%s sampler=%s",
                config.threads, config.duration, len(config.bands), config.sampler)
    results = run_workers(config, log_queue=log_queue, log_level=log_level, inline=inline)
    cycle = merge(config, results)
    logger.info("Workers joined samples=%s proposals=%s", cycle.samples, cycle.proposals)
    log_stats(cycle.buffers, config.duration)
    logger.info("Storing buffers in %s", config.output_dir)
    persist(config, cycle.buffers, discard_corrupt=discard_corrupt)
    log_stats(cycle.buffers)
    return cycle

def run_cycles(config: RunConfig, **kwargs: Any) -> Dict[str, Any]:
    """Run the configured number of cycles; ``cycles=None`` runs until interrupted."""
    logger = get_logger()
    started = time.time()
    done = 0
    samples = 0
    cycles = tqdm(total=config.cycles, unit="cycle", disable=config.cycles == 1)
    try:
        while config.cycles is None or done < config.cycles:
            logger.info("Cycle %s", done)
            samples += run_cycle(config, **kwargs).samples
            done += 1
            cycles.update(1)
    finally:
        cycles.close()
    return {"cycles": done, "samples": samples, "wall_time": time.time() - started}
