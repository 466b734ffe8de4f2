import json
import logging
import logging.handlers
import threading

import pytest

from biovista.config import Config
from biovista.logging_config import (BioVistaFormatter, ContextFilter, LogContext,
                                     StructuredFormatter, current_log_context, get_logger,
                                     log_data_processing, log_function_call, setup_logging,
                                     setup_logging_from_config)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def make_record(msg='hello', **extra):
    record = logging.LogRecord('biovista.test', logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_structured_formatter_includes_context():
    payload = json.loads(StructuredFormatter().format(make_record(dataset_name='samples.xlsx')))
    assert payload['message'] == 'hello'
    assert payload['level'] == 'INFO'
    assert payload['dataset_name'] == 'samples.xlsx'


def test_plain_formatter():
    text = BioVistaFormatter(include_color=False).format(make_record())
    assert 'biovista.test - INFO - hello' in text


def test_setup_logging_writes_file(tmp_path, restore_root_logger):
    setup_logging('DEBUG', log_dir=tmp_path, console_output=False, file_output=True)
    logging.getLogger('biovista.data').info('ingest done')
    for handler in logging.getLogger().handlers:
        handler.flush()

    log_files = list(tmp_path.glob('biovista_*.log'))
    assert len(log_files) == 1
    assert 'ingest done' in log_files[0].read_text(encoding='utf-8')


def test_setup_logging_structured(tmp_path, restore_root_logger):
    setup_logging('INFO', log_dir=tmp_path, console_output=True, file_output=True,
                  structured_logs=True)
    with LogContext(dataset_name='samples.xlsx'):
        logging.getLogger('biovista.analysis').info('detected')
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = next(tmp_path.glob('biovista_*.log')).read_text(encoding='utf-8').splitlines()
    records = [json.loads(line) for line in lines]
    assert any(r['message'] == 'detected' and r['dataset_name'] == 'samples.xlsx' for r in records)


def test_log_function_call_reraises(caplog):
    @log_function_call
    def explode():
        raise RuntimeError('boom')

    with caplog.at_level(logging.ERROR):
        with pytest.raises(RuntimeError):
            explode()
    assert 'explode failed' in caplog.text


def test_log_data_processing(caplog):
    with caplog.at_level(logging.INFO, logger='biovista.data'):
        log_data_processing('ingest', 'samples.xlsx', rows=10)
    record = next(r for r in caplog.records if r.name == 'biovista.data')
    assert record.dataset_name == 'samples.xlsx'
    assert record.rows == 10


def test_get_logger_defaults_to_caller_module():
    assert get_logger().name == __name__


def test_setup_from_config_uses_logging_section(tmp_path, restore_root_logger):
    config = Config()
    config.logging.file_path = tmp_path / 'logs'
    config.logging.file_output = True
    config.logging.console_output = False
    config.logging.max_file_size_mb = 2
    config.logging.backup_count = 3
    config.logging.format = '%(levelname)s|%(message)s'
    setup_logging_from_config(config)

    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    file_handler = handlers[0]
    assert isinstance(file_handler, logging.handlers.RotatingFileHandler)
    assert file_handler.maxBytes == 2 * 1024 * 1024
    assert file_handler.backupCount == 3

    logging.getLogger('biovista.data').warning('configured')
    file_handler.flush()
    text = next((tmp_path / 'logs').glob('biovista_*.log')).read_text(encoding='utf-8')
    assert 'WARNING|configured' in text


def capture_handler(records):
    handler = logging.Handler()
    handler.emit = records.append
    handler.addFilter(ContextFilter())
    return handler


def test_log_context_stays_in_its_thread():
    records = []
    handler = capture_handler(records)
    logger = logging.getLogger('biovista.test.context')
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    factory = logging.getLogRecordFactory()
    try:
        with LogContext(dataset_name='main.xlsx'):
            assert logging.getLogRecordFactory() is factory
            worker = threading.Thread(target=logger.info, args=('from worker',))
            worker.start()
            worker.join()
            logger.info('from main')
        logger.info('after')
    finally:
        logger.removeHandler(handler)

    by_message = {r.getMessage(): r for r in records}
    assert by_message['from main'].dataset_name == 'main.xlsx'
    assert not hasattr(by_message['from worker'], 'dataset_name')
    assert not hasattr(by_message['after'], 'dataset_name')


def test_nested_log_context_restores_outer():
    with LogContext(dataset_name='outer.xlsx', session_id='s1'):
        with LogContext(dataset_name='inner.xlsx'):
            assert current_log_context() == {'dataset_name': 'inner.xlsx', 'session_id': 's1'}
        assert current_log_context() == {'dataset_name': 'outer.xlsx', 'session_id': 's1'}
    assert current_log_context() == {}


def test_explicit_extra_wins_over_context(caplog):
    records = []
    handler = capture_handler(records)
    data_logger = logging.getLogger('biovista.data')
    data_logger.addHandler(handler)
    try:
        with caplog.at_level(logging.INFO, logger='biovista.data'):
            with LogContext(dataset_name='outer.xlsx'):
                log_data_processing('ingest', 'samples.xlsx')
    finally:
        data_logger.removeHandler(handler)
    assert records[-1].dataset_name == 'samples.xlsx'
