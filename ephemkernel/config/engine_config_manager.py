"""
Engine configuration manager.
Loads kernel-session configurations from YAML and builds the objects they name.
"""

import yaml
import logging
from pathlib import Path
from typing import Union

from ..exceptions import InvalidArgumentError
from ..spk.segments import EXPENSE_POLICIES, DecayExpensePolicy, ExpensePolicy
from .engine_config_schemas import EngineConfig, ExpensePolicyConfig

logger = logging.getLogger(__name__)


class EngineConfigManager:
    """
    Configuration manager for kernel sessions.
    Handles configuration loading and kernel path resolution.
    """

    def __init__(self):
        self.config_directory = None  # Directory of the last loaded config file

    def load_config(self, config_path: Union[str, Path]) -> EngineConfig:
        """
        Load a session configuration from a YAML file.

        Args:
            config_path: Path to the configuration YAML file

        Returns:
            EngineConfig: Loaded configuration, kernel paths made absolute
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        self.config_directory = config_path.resolve().parent
        logger.info(f"Loading engine config from: {config_path}")

        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
        if not isinstance(config_data, dict):
            raise InvalidArgumentError(f"Configuration {config_path} must be a mapping")

        config = EngineConfig()
        config.name = config_data.get('name', config.name)

        for kernel in config_data.get('kernels', []) or []:
            config.kernels.append(str(self.resolve_kernel_path(kernel)))
            logger.debug(f"  Kernel: {config.kernels[-1]}")

        if 'expense_policy' in config_data:
            policy = config_data['expense_policy'] or {}
            config.expense_policy = ExpensePolicyConfig(
                name=str(policy.get('name', 'reset')).lower(),
                decay_factor=float(policy.get('decay_factor', 0.5))
            )

        logger.info(f"Loaded engine config: {config.name} with {len(config.kernels)} kernel(s)")
        return config

    def resolve_kernel_path(self, kernel_path: Union[str, Path]) -> Path:
        """Resolve a kernel path relative to the config file directory."""
        kernel_path = Path(kernel_path)
        if not kernel_path.is_absolute() and self.config_directory is not None:
            kernel_path = self.config_directory / kernel_path
        return kernel_path

    @staticmethod
    def build_expense_policy(config: EngineConfig) -> ExpensePolicy:
        """Instantiate the expense policy named by the configuration."""
        policy_config = config.expense_policy
        policy_class = EXPENSE_POLICIES.get(policy_config.name)
        if policy_class is None:
            raise InvalidArgumentError(
                f"Unknown expense policy '{policy_config.name}'. "
                f"Available: {', '.join(sorted(EXPENSE_POLICIES))}"
            )
        if policy_class is DecayExpensePolicy:
            return DecayExpensePolicy(policy_config.decay_factor)
        return policy_class()
