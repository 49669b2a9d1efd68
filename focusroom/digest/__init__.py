from focusroom.digest.aggregator import ActivitySet, collect
from focusroom.digest.renderer import DigestReport, render
from focusroom.digest.scheduler import DigestCycleResult, Trigger, preview, run_digest_cycle

__all__ = [
    "ActivitySet",
    "DigestCycleResult",
    "DigestReport",
    "Trigger",
    "collect",
    "preview",
    "render",
    "run_digest_cycle",
]
