"""Tests for log masking."""

import logging

import pytest

from common.logging_config import SensitiveDataFilter, get_logger, setup_logging


@pytest.fixture
def log_filter():
    return SensitiveDataFilter()


def _record(msg, args=None):
    return logging.LogRecord('test', logging.INFO, __file__, 1, msg, args, None)


@pytest.mark.parametrize('message,secret', [
    ('headers x-transfer-password: hunter2', 'hunter2'),
    ('{"password": "hunter2"}', 'hunter2'),
    ('Authorization: Bearer abc.def.ghi', 'abc.def.ghi'),
    ('grant http://h/storage/t/a.txt?expires=1&signature=deadbeef', 'deadbeef'),
    ('https://b.s3.amazonaws.com/k?X-Amz-Credential=AKIA123&X-Amz-Signature=cafe', 'cafe'),
])
def test_masks_secrets(log_filter, message, secret):
    record = _record(message)

    assert log_filter.filter(record) is True
    assert secret not in record.getMessage()
    assert '***MASKED***' in record.getMessage()


def test_masks_format_args(log_filter):
    record = _record('login %s', ('password=hunter2',))

    log_filter.filter(record)

    assert 'hunter2' not in record.getMessage()


def test_plain_messages_untouched(log_filter):
    record = _record('Listed 3 files [transfer_id=abc]')

    log_filter.filter(record)

    assert record.getMessage() == 'Listed 3 files [transfer_id=abc]'


def test_module_loggers_inherit_component_handler():
    component = setup_logging('loggingtest', log_level='DEBUG')
    child = get_logger('loggingtest.module')

    assert component.handlers
    assert child.parent is component
    assert child.getEffectiveLevel() == logging.DEBUG
