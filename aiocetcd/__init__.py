from .exceptions import (
    BaseError,
    EtcdError,
    KeyNotFound,
    CompareFailed,
    NotFile,
    NotDir,
    NodeExist,
    RootReadOnly,
    DirNotEmpty,
    Unauthorized,
    EventIndexCleared,
    ResponseParseFailed,
    SendRequestFailed,
    ClusterFailed,
    get_error_class,
)
from .response import Action, Node, Response, parse_response, log_response
from .cluster import ClusterAddresses, Member
from .watcher import Watcher, WatcherState, WatcherRegistry
from .watch import WatchId
from .client import Client, Settings
from .config import Config, get_config

__all__ = [
    'BaseError', 'EtcdError', 'KeyNotFound', 'CompareFailed',
    'NotFile', 'NotDir', 'NodeExist', 'RootReadOnly', 'DirNotEmpty',
    'Unauthorized', 'EventIndexCleared', 'ResponseParseFailed',
    'SendRequestFailed', 'ClusterFailed', 'get_error_class',
    'Action', 'Node', 'Response', 'parse_response', 'log_response',
    'ClusterAddresses', 'Member',
    'Watcher', 'WatcherState', 'WatcherRegistry', 'WatchId',
    'Client', 'Settings',
    'Config', 'get_config',
]

__version__ = '0.1.0'
