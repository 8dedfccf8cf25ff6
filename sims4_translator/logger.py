import logging
from pathlib import Path

LOG_DIR = Path(__file__).parent.parent / "logs"
LOG_FILE = LOG_DIR / "app.log"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Cache for log mode to avoid repeated config reads
_log_mode_cache = None


def _get_log_mode():
    """Get log mode from configuration."""
    global _log_mode_cache
    if _log_mode_cache is not None:
        return _log_mode_cache

    try:
        from sims4_translator.config import load_config
        config = load_config()
        log_mode = config.get('log_mode', 'off')
        _log_mode_cache = log_mode
        return log_mode
    except Exception:
        # Config not readable yet (first start, missing table): stay quiet
        return 'off'


def _levels_for(log_mode: str):
    """Return (logger_level, console_level) for a log mode."""
    if log_mode == 'debug':
        return logging.DEBUG, logging.DEBUG
    if log_mode == 'off':
        # Higher than CRITICAL disables everything
        return logging.CRITICAL + 1, logging.CRITICAL + 1
    return logging.INFO, logging.INFO


def _sync_handlers(logger: logging.Logger, log_mode: str):
    """Add/remove the file handler and retune console handlers for log_mode."""
    logger_level, console_level = _levels_for(log_mode)
    logger.setLevel(logger_level)

    formatter = logging.Formatter(LOG_FORMAT)
    has_file_handler = any(isinstance(h, logging.FileHandler) for h in logger.handlers)

    if log_mode != 'off' and not has_file_handler:
        LOG_DIR.mkdir(exist_ok=True)
        f_handler = logging.FileHandler(LOG_FILE, encoding='utf-8')
        f_handler.setLevel(logging.DEBUG)
        f_handler.setFormatter(formatter)
        logger.addHandler(f_handler)
    elif log_mode == 'off' and has_file_handler:
        for handler in [h for h in logger.handlers if isinstance(h, logging.FileHandler)]:
            handler.close()
            logger.removeHandler(handler)

    has_console_handler = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in logger.handlers
    )
    if log_mode != 'off' and not has_console_handler:
        c_handler = logging.StreamHandler()
        c_handler.setFormatter(formatter)
        logger.addHandler(c_handler)

    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(console_level)


def clear_log_mode_cache():
    """Forget the cached log mode and retune every logger created by get_logger.

    Call this after the configuration has been saved.
    """
    global _log_mode_cache
    _log_mode_cache = None

    log_mode = _get_log_mode()
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        if not logger_name.startswith('sims4_translator'):
            continue
        logger = logging.getLogger(logger_name)
        if getattr(logger, '_sims4_managed', False):
            _sync_handlers(logger, log_mode)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    logger._sims4_managed = True
    _sync_handlers(logger, _get_log_mode())
    return logger
