"""
Engine configuration schemas.
Dataclasses filled from the YAML session configuration.
"""

from dataclasses import dataclass, field
from typing import List


@dataclass
class ExpensePolicyConfig:
    """Which reuse-expense policy the segment registry uses."""
    name: str = "reset"
    decay_factor: float = 0.5


@dataclass
class EngineConfig:
    """
    Complete configuration of a kernel session.
    Kernel paths are absolute once loaded through EngineConfigManager.
    """
    name: str = "Unnamed session"
    kernels: List[str] = field(default_factory=list)
    expense_policy: ExpensePolicyConfig = field(default_factory=ExpensePolicyConfig)
