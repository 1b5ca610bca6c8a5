import logging
import signal

import pytest

from spikepipe.execution.observer import LoggingObserver
from spikepipe.utils.logging import ColoredFormatter, RunLog, setup_logging
from spikepipe.utils.signals import CancellationToken, GracefulShutdown


@pytest.fixture
def restore_spikepipe_logger():
    logger = logging.getLogger("spikepipe")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate


def test_setup_logging_writes_file(tmp_path, restore_spikepipe_logger):
    logger = setup_logging("DEBUG", log_dir=tmp_path, experiment_name="exp", color=False)
    logger.getChild("run.x").info("hello")
    for handler in logger.handlers:
        handler.flush()

    files = list(tmp_path.glob("exp_*.log"))
    assert len(files) == 1
    assert "hello" in files[0].read_text()


def test_colored_formatter_keeps_record_plain():
    record = logging.makeLogRecord({"levelname": "INFO", "msg": "x", "levelno": logging.INFO})
    out = ColoredFormatter("%(levelname)s %(message)s").format(record)
    assert "\033[32m" in out
    assert record.levelname == "INFO"


def test_run_log_channels(caplog):
    log = RunLog("exp", parent=logging.getLogger("spikepipe.tests"))
    with caplog.at_level("INFO", logger="spikepipe.tests"):
        log.print("progress")
        log.log("result")

    names = {r.name: r.getMessage() for r in caplog.records}
    assert names == {
        "spikepipe.tests.run.exp": "progress",
        "spikepipe.tests.results.exp": "result",
    }


def test_logging_observer_reports_rate(caplog):
    observer = LoggingObserver(logging.getLogger("spikepipe.tests.progress"))
    with caplog.at_level("INFO", logger="spikepipe.tests.progress"):
        observer.stage_started(0, "x")
        observer.tick(0, 9)
        observer.refresh(0)
    assert "10 samples" in caplog.text


def test_cancellation_token():
    token = CancellationToken()
    assert not token.cancelled
    token.cancel("done")
    assert token.cancelled
    assert token.reason == "done"


def test_graceful_shutdown_cancels_then_restores_handlers():
    before = signal.getsignal(signal.SIGINT)
    with GracefulShutdown() as shutdown:
        shutdown._handler(signal.SIGINT, None)
        assert shutdown.should_stop
        assert shutdown.token.reason == f"signal {signal.SIGINT}"
        with pytest.raises(SystemExit):
            shutdown._handler(signal.SIGINT, None)
    assert signal.getsignal(signal.SIGINT) is before
