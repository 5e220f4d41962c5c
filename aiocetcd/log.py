from typing import Dict, Any, List, Optional
import os
import logging
import logging.config

LOG_FORMAT = '[%(asctime)s] %(process)d %(name)s [%(levelname)s] %(message)s'

def _env_flag(name: str) -> bool:
    return os.getenv(name, '').lower() in ('1', 'true', 'yes')

def _default_level() -> str:
    from aiocetcd import testing
    return 'DEBUG' if testing.test_mode() else 'INFO'

def logging_config(level: str,
                   console: bool=False,
                   filename: Optional[str]=None) -> Dict[str, Any]:
    '''
    Build a dictConfig document. Without console or file output the
    root logger only gets a null handler, a library stays silent
    unless the application asks for output.
    '''
    handlers: Dict[str, Dict[str, Any]] = {
        'null': {'class': 'logging.NullHandler'},
    }
    root_handlers: List[str] = []
    if console:
        handlers['console'] = {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
            'stream': 'ext://sys.stderr',
        }
        root_handlers.append('console')
    if filename:
        handlers['file'] = {
            'class': 'logging.handlers.WatchedFileHandler',
            'formatter': 'simple',
            'filename': filename,
        }
        root_handlers.append('file')

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {'simple': {'format': LOG_FORMAT}},
        'handlers': handlers,
        # aiohttp access and client logs are noisy at debug level
        'loggers': {'aiohttp': {'level': 'WARNING'}},
        'root': {
            'level': level.upper(),
            'handlers': root_handlers or ['null'],
        },
    }

def config_log(mute_console: bool=False) -> None:
    '''
    Configure logging from the environment:
    CETCD_LOG_LEVEL, CETCD_LOG_CONSOLE and CETCD_LOG_FILE.
    '''
    level = os.getenv('CETCD_LOG_LEVEL') or _default_level()
    console = _env_flag('CETCD_LOG_CONSOLE') and not mute_console
    logging.config.dictConfig(
        logging_config(level, console=console,
                       filename=os.getenv('CETCD_LOG_FILE') or None))
