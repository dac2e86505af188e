"""
Unit tests for the configuration collaborator.
"""
import datetime
import json
import logging

import pytest
from activerecord.config import Config, SQLLoggerAdapter
from activerecord.exceptions import ConfigError


class DateWithoutStrptime:

    def strftime(self, format):
        return ''


class CollectingLogger:

    def __init__(self):
        self.messages = []

    def log(self, message):
        self.messages.append(message)


def test_defaults():
    config = Config()
    assert config.get_connections() == {}
    assert config.get_default_connection() == 'development'
    assert config.get_date_class() is datetime.datetime
    assert config.get_logger() is None


def test_connections():
    config = Config(connections={'development': 'sqlite://:memory:'})
    assert config.get_connection('development') == 'sqlite://:memory:'
    assert config.get_connection('production') is None
    assert config.get_default_connection_string() == 'sqlite://:memory:'


def test_set_connections_with_default():
    config = Config()
    config.set_connections({'test': 'sqlite://'}, default_connection='test')
    assert config.get_default_connection() == 'test'
    assert config.get_default_connection_string() == 'sqlite://'


def test_connections_must_be_mapping():
    with pytest.raises(ConfigError):
        Config(connections=['sqlite://'])


def test_logger_must_have_log_method():
    with pytest.raises(ConfigError):
        Config(logger=object())


def test_custom_logger():
    sql_logger = CollectingLogger()
    config = Config(logger=sql_logger)
    config.get_logger().log('SELECT 1')
    assert sql_logger.messages == ['SELECT 1']


def test_stdlib_logger_is_adapted(caplog):
    config = Config(logger=logging.getLogger('sql'))
    assert isinstance(config.get_logger(), SQLLoggerAdapter)
    with caplog.at_level(logging.DEBUG, logger='sql'):
        config.get_logger().log('SELECT 1')
    assert 'SELECT 1' in caplog.text


def test_date_class_by_dotted_name():
    config = Config(date_class='datetime.datetime')
    assert config.get_date_class() is datetime.datetime


def test_date_class_requires_strftime():
    with pytest.raises(ConfigError):
        Config(date_class=int)


def test_date_class_requires_strptime():
    with pytest.raises(ConfigError):
        Config(date_class=DateWithoutStrptime)


def test_date_class_unknown_dotted_name():
    with pytest.raises(ConfigError):
        Config(date_class='nowhere.Nothing')


def test_from_file(tmp_path):
    path = tmp_path / 'database.json'
    path.write_text(json.dumps({
        'connections': {'production': 'mysql://u:p@h/db'},
        'default_connection': 'production',
        }))
    config = Config.from_file(path)
    assert config.get_default_connection_string() == 'mysql://u:p@h/db'


def test_from_file_errors(tmp_path):
    with pytest.raises(ConfigError):
        Config.from_file(tmp_path / 'missing.json')

    path = tmp_path / 'list.json'
    path.write_text('[]')
    with pytest.raises(ConfigError):
        Config.from_file(path)
