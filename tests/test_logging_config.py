"""Tests for logging setup and sensitive data masking."""

import logging

from common.logging_config import SensitiveDataFilter, get_logger, setup_logging


def make_record(msg, args=None):
    return logging.LogRecord('test', logging.INFO, __file__, 1, msg, args, None)


def test_masks_signed_url_material():
    record = make_record(
        'url=https://storage.googleapis.com/b/k?X-Goog-Credential=svc%2F2024&X-Goog-Signature=abc123ef'
    )

    SensitiveDataFilter().filter(record)

    assert 'abc123ef' not in record.msg
    assert 'svc%2F2024' not in record.msg
    assert 'X-Goog-Signature=***MASKED***' in record.msg


def test_masks_key_file_in_args():
    record = make_record('config: %s', ('key_file=/secrets/gcp-key.json',))

    SensitiveDataFilter().filter(record)

    assert record.getMessage() == 'config: key_file=***MASKED***'


def test_leaves_plain_messages():
    record = make_record('Chunk 3 received for session s1')

    assert SensitiveDataFilter().filter(record)
    assert record.msg == 'Chunk 3 received for session s1'


def test_setup_logging_level():
    logger = setup_logging('coordinator', log_level='DEBUG')

    assert logger.name == 'coordinator'
    assert logger.level == logging.DEBUG
    assert logger.handlers
    assert get_logger('coordinator.reassembly').getEffectiveLevel() == logging.DEBUG
