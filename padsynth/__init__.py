"""PADsynth wave tables, oscillators, effects, tuning, presets, programs, scheduling and session-manager client."""

__version__ = "0.1.0"

__all__ = ["fx", "wave", "tuning", "sample", "sched", "programs", "param", "nsm"]