"""
Synthetic training curves.

Produces plausible per-epoch metrics (exponentially decaying loss,
saturating accuracy, step-decayed learning rate) for the simulated
training sessions. A seed makes a run reproducible.
"""

from __future__ import annotations

import math
import random
from typing import Optional

from truckops.models.training import EpochMetrics

NOISE_AMPLITUDE = 0.02
LR_BASE = 0.001
LR_DECAY = 0.9
LR_STEP_EPOCHS = 20


class TrainingSimulator:
    """Generate epoch metrics for a run of *total_epochs* epochs."""

    def __init__(self, total_epochs: int, seed: Optional[int] = None) -> None:
        if total_epochs < 1:
            raise ValueError("total_epochs must be at least 1")
        self.total_epochs = total_epochs
        self._rng = random.Random(seed)

    def _noise(self) -> float:
        return (self._rng.random() - 0.5) * NOISE_AMPLITUDE

    def epoch(self, epoch: int) -> EpochMetrics:
        progress = epoch / self.total_epochs
        return EpochMetrics(
            epoch=epoch,
            loss=max(0.01, 2.5 * math.exp(-3 * progress) + self._noise()),
            accuracy=min(0.99, 0.5 + 0.49 * (1 - math.exp(-3 * progress)) + self._noise()),
            val_loss=max(0.01, 2.8 * math.exp(-2.5 * progress) + self._noise() * 2),
            val_accuracy=min(
                0.98, 0.45 + 0.48 * (1 - math.exp(-2.5 * progress)) + self._noise()
            ),
            learning_rate=LR_BASE * LR_DECAY ** (epoch // LR_STEP_EPOCHS),
            memory_usage=0.5 + progress * 0.3 + self._rng.random() * 0.1,
        )

    def run(self, patience: Optional[int] = None) -> list[EpochMetrics]:
        """Generate the whole curve, honouring early stopping on ``val_loss``."""
        history: list[EpochMetrics] = []
        stopper = EarlyStopping(patience) if patience else None
        for n in range(1, self.total_epochs + 1):
            metrics = self.epoch(n)
            history.append(metrics)
            if stopper is not None and stopper.step(metrics.val_loss):
                break
        return history


class EarlyStopping:
    """Stop once ``val_loss`` has not improved for *patience* epochs."""

    def __init__(self, patience: int) -> None:
        self.patience = patience
        self.best = math.inf
        self.stale = 0

    def step(self, val_loss: float) -> bool:
        if val_loss < self.best:
            self.best = val_loss
            self.stale = 0
        else:
            self.stale += 1
        return self.stale >= self.patience
