from .pvpool import PvPool, ScalingAction, decide_scaling_action

__all__ = [
    "PvPool",
    "ScalingAction",
    "decide_scaling_action",
]
