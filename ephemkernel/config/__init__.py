from .engine_config_schemas import EngineConfig, ExpensePolicyConfig
from .engine_config_manager import EngineConfigManager

__all__ = [
    'EngineConfig',
    'ExpensePolicyConfig',
    'EngineConfigManager',
]
