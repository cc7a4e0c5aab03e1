"""Training lifecycle: checkpoints, orchestration, the driving loop and shutdown."""

from trainrunner.training.base import DataCursor, Trainable
from trainrunner.training.checkpoint import Checkpoint, CheckpointPayload, CheckpointStore
from trainrunner.training.lifecycle import RunState
from trainrunner.training.loop import IntervalSchedule, TrainingLoop, TrainingResult
from trainrunner.training.orchestrator import Orchestrator, OrchestratorState
from trainrunner.training.shutdown import ShutdownCoordinator
from trainrunner.training.trainable import TorchTrainable

__all__ = [
    "Checkpoint",
    "CheckpointPayload",
    "CheckpointStore",
    "DataCursor",
    "IntervalSchedule",
    "Orchestrator",
    "OrchestratorState",
    "RunState",
    "ShutdownCoordinator",
    "TorchTrainable",
    "Trainable",
    "TrainingLoop",
    "TrainingResult",
]
