import pytest

from budget_dashboard.settings import get_budget_config, get_config_value, load_config


def test_budget_presets_load():
    config = load_config('budget')

    assert config['forecast']['warning_gap'] == -20000
    assert len(config['default_categories']) == 10
    assert config['parser']['default_category'] == 'Food'


def test_missing_preset_file_raises():
    with pytest.raises(FileNotFoundError):
        load_config('does_not_exist')


def test_get_config_value_with_default():
    assert get_config_value('budget', 'challenges', 'default_income') == 300000
    assert get_config_value('budget', 'nope', 'nothing', default=7) == 7
    assert get_config_value('does_not_exist', 'x', default='fallback') == 'fallback'


def test_budget_config_is_a_fresh_copy():
    config = get_budget_config()
    config['forecast']['warning_gap'] = 0

    assert get_budget_config()['forecast']['warning_gap'] == -20000
