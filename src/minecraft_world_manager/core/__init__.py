from .world_store import WorldStore, WorldInfo, BackupEntry
from .world_swap import WorldSwapOrchestrator, SwapState, ImportResult, ExportedArchive

__all__ = [
    "WorldStore",
    "WorldInfo",
    "BackupEntry",
    "WorldSwapOrchestrator",
    "SwapState",
    "ImportResult",
    "ExportedArchive",
]
