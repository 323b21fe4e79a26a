import sys

from pathknock.logging import get_logging_config


def test_logging_config_levels():
    config = get_logging_config("debug")
    assert config["loggers"]["pathknock"]["level"] == "DEBUG"
    assert config["loggers"]["pathknock"]["propagate"] is False
    assert config["handlers"]["console"]["stream"] is sys.stdout


def test_logging_config_uses_standard_format():
    config = get_logging_config()
    assert config["formatters"]["standard"]["format"] == "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    assert config["root"]["level"] == "INFO"
