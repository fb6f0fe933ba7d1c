from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from buddhabrot.config import RunConfig
from buddhabrot.engine.deadline import Deadline
from buddhabrot.engine.hits import HitBuffer
from buddhabrot.engine.sampler import Sample, Source, UniformSampler, make_sampler
from buddhabrot.util.logging_setup import get_logger

@dataclass
class WorkerResult:
    buffers: List[HitBuffer]
    samples: int
    proposals: int
    elapsed: float

class Worker:
    """One sampling loop with private hit buffers, one per band."""

    def __init__(self, config: RunConfig, sampler: UniformSampler):
        self.config = config
        self.sampler = sampler
        self.buffers = [HitBuffer(*config.band_shape(b)) for b in config.bands]
        self.samples = 0

    def record(self, sample: Sample) -> None:
        for band, buf in zip(self.config.bands, self.buffers):
            if not band.contains(sample.iteration):
                continue
            hi = min(band.max_iterations, sample.iteration)
            if hi > band.min_iterations:
                buf.record(sample.trajectory[band.min_iterations:hi], sample.weight)

    def step(self) -> bool:
        sample = self.sampler.step()
        if sample is None:
            return False
        self.record(sample)
        self.samples += 1
        return True

    def run(self, deadline: Deadline) -> WorkerResult:
        while not deadline.check():
            self.step()
        return WorkerResult(self.buffers, self.samples, self.sampler.proposals, deadline.elapsed())

def run_worker(config: RunConfig, seed: Optional[np.random.SeedSequence] = None, source: Optional[Source] = None) -> WorkerResult:
    """Entry point executed inside each pool process."""
    logger = get_logger("worker")
    rng = np.random.default_rng(seed)
    worker = Worker(config, make_sampler(config, rng, source))
    result = worker.run(Deadline(config.duration))
    logger.debug("Worker done samples=%s proposals=%s elapsed=%.2fs",
                 result.samples, result.proposals, result.elapsed)
    return result
