import pytest

from ephemkernel.config import EngineConfig, EngineConfigManager, ExpensePolicyConfig
from ephemkernel.exceptions import InvalidArgumentError
from ephemkernel.spk import DecayExpensePolicy, KeepExpensePolicy, ResetExpensePolicy


def test_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    config = EngineConfigManager().load_config(path)
    assert config == EngineConfig()
    assert config.expense_policy == ExpensePolicyConfig("reset", 0.5)


def test_kernel_paths_resolve_against_config_directory(tmp_path):
    (tmp_path / "configs").mkdir()
    path = tmp_path / "configs" / "session.yaml"
    path.write_text("name: de\nkernels:\n  - ../kernels/de440.bsp\n  - /abs/naif0012.tls\n")
    manager = EngineConfigManager()
    config = manager.load_config(path)
    assert config.name == "de"
    assert config.kernels[0] == str(manager.config_directory / ".." / "kernels" / "de440.bsp")
    assert config.kernels[1] == "/abs/naif0012.tls"
    assert manager.config_directory == path.resolve().parent


def test_missing_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        EngineConfigManager().load_config(tmp_path / "nope.yaml")


def test_config_must_be_a_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(InvalidArgumentError):
        EngineConfigManager().load_config(path)


@pytest.mark.parametrize("name, policy_class", [
    ("reset", ResetExpensePolicy),
    ("DECAY", DecayExpensePolicy),
    ("keep", KeepExpensePolicy),
])
def test_build_expense_policy(tmp_path, name, policy_class):
    path = tmp_path / "policy.yaml"
    path.write_text(f"expense_policy:\n  name: {name}\n  decay_factor: 0.75\n")
    config = EngineConfigManager().load_config(path)
    policy = EngineConfigManager.build_expense_policy(config)
    assert isinstance(policy, policy_class)
    if policy_class is DecayExpensePolicy:
        assert policy.decay_factor == 0.75


def test_unknown_expense_policy():
    config = EngineConfig(expense_policy=ExpensePolicyConfig("lru"))
    with pytest.raises(InvalidArgumentError):
        EngineConfigManager.build_expense_policy(config)
