# tests/test_config.py
import pytest

import sims4_translator.config as config
from sims4_translator.core import database as db
from sims4_translator.language_codes import get_language_name, normalize_locale


def test_defaults_when_nothing_is_stored(temp_db):
    loaded = config.load_config()
    assert loaded == config.DEFAULT_CONFIG
    assert loaded is not config.DEFAULT_CONFIG


def test_initialize_app_stores_defaults(temp_db):
    config.initialize_app()
    assert db.get_app_config("config") is not None


def test_saved_config_gains_new_translation_keys(temp_db):
    config.save_config({"ai_provider": "deepseek", "translation": {"batch_size": 10}})

    loaded = config.load_config()

    assert loaded["ai_provider"] == "deepseek"
    assert loaded["translation"]["batch_size"] == 10
    assert loaded["translation"]["target_language"] == config.DEFAULT_TARGET_LANGUAGE


def test_corrupt_config_falls_back_to_defaults(temp_db):
    db.set_app_config("config", "{not json")
    assert config.load_config() == config.DEFAULT_CONFIG


@pytest.mark.parametrize("value,expected", [
    (None, config.DEFAULT_BATCH_SIZE),
    (20, 20),
    ("15", 15),
    (0, 1),
    (5000, config.MAX_BATCH_SIZE),
    ("lots", config.DEFAULT_BATCH_SIZE),
])
def test_get_batch_size(value, expected):
    translation = {} if value is None else {"batch_size": value}
    assert config.get_batch_size({"translation": translation}) == expected


def test_prompt_keeps_game_tokens_literal():
    prompt = config.get_prompt()["prompt"].format(
        target_language_name="German",
        target_language_code="GER_DE",
        instruction_section="",
        text_count=1,
        texts_json="{}",
    )
    assert "{0.SimFirstName}" in prompt


@pytest.mark.parametrize("code,expected", [
    ("chs_cn", "CHS_CN"),
    ("zh-CN", "CHS_CN"),
    ("de", "GER_DE"),
    ("xx", None),
    ("", None),
])
def test_normalize_locale(code, expected):
    assert normalize_locale(code) == expected


def test_language_name():
    assert get_language_name("ENG_US") == "English"
