from typing import Dict, Any, Optional, Type, Callable

class BaseError(Exception):
    pass

class EtcdError(BaseError):
    '''
    An error reported by etcd or raised locally while talking to it.

    etcd's own error codes occupy [100, 500], local codes start at 1000.
    '''
    code: int = 0

    def __init__(self, message: str='', cause: Optional[str]=None,
                 index: Optional[int]=None, code: Optional[int]=None) -> None:
        if code is not None:
            self.code = code
        self.message = message
        self.cause = cause
        self.index = index
        super(EtcdError, self).__init__(message or self.code)

    def __repr__(self) -> str:
        return '{}(code={!r}, message={!r}, cause={!r}, index={!r})'.format(
            type(self).__name__, self.code, self.message,
            self.cause, self.index)

    def __str__(self) -> str:
        if self.cause:
            return '[{}] {} ({})'.format(self.code, self.message, self.cause)
        return '[{}] {}'.format(self.code, self.message)

_code2class: Dict[int, Type[EtcdError]] = {}

def _register(code: int) -> Callable[[Type[EtcdError]], Type[EtcdError]]:
    def do(cls: Type[EtcdError]) -> Type[EtcdError]:
        assert code not in _code2class, code
        cls.code = code
        _code2class[code] = cls
        return cls
    return do

def get_error_class(code: int) -> Type[EtcdError]:
    return _code2class.get(code, EtcdError)

def error_from_json(data: Dict[str, Any]) -> EtcdError:
    code = int(data['errorCode'])
    cls = get_error_class(code)
    return cls(data.get('message', ''),
               cause=data.get('cause'),
               index=data.get('index'),
               code=code)

# command related errors
@_register(100)
class KeyNotFound(EtcdError):
    pass

@_register(101)
class CompareFailed(EtcdError):
    pass

@_register(102)
class NotFile(EtcdError):
    pass

@_register(104)
class NotDir(EtcdError):
    pass

@_register(105)
class NodeExist(EtcdError):
    pass

@_register(106)
class KeyIsPreserved(EtcdError):
    pass

@_register(107)
class RootReadOnly(EtcdError):
    pass

@_register(108)
class DirNotEmpty(EtcdError):
    pass

@_register(110)
class Unauthorized(EtcdError):
    pass

# post form related errors
@_register(200)
class ValueRequired(EtcdError):
    pass

@_register(201)
class PrevValueRequired(EtcdError):
    pass

@_register(202)
class TTLNaN(EtcdError):
    pass

@_register(203)
class IndexNaN(EtcdError):
    pass

@_register(209)
class InvalidField(EtcdError):
    pass

@_register(210)
class InvalidForm(EtcdError):
    pass

@_register(211)
class RefreshValue(EtcdError):
    pass

@_register(212)
class RefreshTTLRequired(EtcdError):
    pass

# raft related errors
@_register(300)
class RaftInternal(EtcdError):
    pass

@_register(301)
class LeaderElect(EtcdError):
    pass

# etcd related errors
@_register(400)
class WatcherCleared(EtcdError):
    pass

@_register(401)
class EventIndexCleared(EtcdError):
    pass

@_register(500)
class ClientInternal(EtcdError):
    pass

# local errors
@_register(1000)
class ResponseParseFailed(EtcdError):
    pass

@_register(1001)
class SendRequestFailed(EtcdError):
    pass

@_register(1002)
class ClusterFailed(EtcdError):
    pass
