from typing import Dict, Any, List, Union, Iterable, Iterator, Optional, Callable, TYPE_CHECKING
import enum
import asyncio
import inspect
import logging
from aiocetcd.exceptions import (
    EtcdError, ClusterFailed, SendRequestFailed,
    ResponseParseFailed, EventIndexCleared)
from aiocetcd.response import Response

if TYPE_CHECKING:
    from aiocetcd.client import Client

logger = logging.getLogger(__name__)

# seconds to wait before polling again after etcd reported an error
RETRY_DELAY = 1.0

WatchResult = Union[Response, EtcdError]
WatcherCallback = Callable[[Any, WatchResult], Any]

class WatcherState(enum.Enum):
    CREATED = 'created'
    ACTIVE = 'active'
    STOPPED = 'stopped'
    DESTROYED = 'destroyed'

class Watcher:
    '''
    A long-poll subscription on one key.

    The callback is called as callback(user_data, result) for every
    event, result being a Response, or the EtcdError a reached etcd
    node answered with. A truthy return value stops the watcher, the
    callback can be a coroutine function.
    '''
    client: 'Client'
    key: str
    index: int
    recursive: bool
    once: bool
    callback: Optional[WatcherCallback]
    user_data: Any
    attempts: int = 0
    array_index: int = -1
    registry: Optional['WatcherRegistry'] = None
    state: WatcherState = WatcherState.CREATED
    error: Optional[EtcdError] = None
    events: int = 0

    def __init__(self, client: 'Client', key: str, index: int=0,
                 recursive: bool=False, once: bool=False,
                 callback: Optional[WatcherCallback]=None,
                 user_data: Any=None) -> None:
        assert callable(callback), 'watcher callback required'
        assert index >= 0
        self.client = client
        self.key = key
        self.index = index
        self.recursive = recursive
        self.once = once
        self.callback = callback
        self.user_data = user_data
        self.attempts = 0
        self.array_index = -1
        self.registry = None
        self.state = WatcherState.CREATED
        self.error = None
        self.events = 0
        self._task: Optional['asyncio.Task[None]'] = None

    @property
    def is_active(self) -> bool:
        return self.state is WatcherState.ACTIVE

    def params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {'wait': True}
        if self.recursive:
            params['recursive'] = True
        if self.index:
            params['waitIndex'] = self.index
        return params

    def release(self) -> None:
        if self.state is WatcherState.ACTIVE:
            raise RuntimeError('stop watcher {!r} before release'.format(self))
        if self.registry is not None:
            self.registry.remove(self)
        self.state = WatcherState.DESTROYED
        self.callback = None
        self.user_data = None

    async def run(self) -> None:
        assert self.state is WatcherState.ACTIVE, self.state
        self.attempts = len(self.client.cluster)
        logger.debug('watching %s from index %s', self.key, self.index)
        try:
            while self.state is WatcherState.ACTIVE:
                if not await self._step():
                    break
        finally:
            if self.state is WatcherState.ACTIVE:
                self.state = WatcherState.STOPPED
            self.client._active.discard(self)
            logger.debug('watcher on %s stopped after %s events',
                         self.key, self.events)

    async def _step(self) -> bool:
        '''
        Issue one long poll and deliver its outcome,
        returns False once the watcher has to stop.
        '''
        client = self.client
        try:
            resp = await client._watch_poll(self)
        except asyncio.TimeoutError:
            logger.debug('timeout during watching %s', self.key)
            return True
        except SendRequestFailed as e:
            self.attempts -= 1
            if self.attempts > 0:
                logger.warning('watch %s failed, %s, try next address',
                               self.key, e.message)
                return True
            err = ClusterFailed(
                'watch {} failed on every cluster address'.format(self.key),
                cause=e.message)
            logger.warning('%s', err)
            self.error = client.last_error = err
            return False
        except ResponseParseFailed as e:
            self.error = client.last_error = e
            await self._notify(e)
            return False
        except EtcdError as e:
            client.last_error = e
            if await self._notify(e):
                return False
            if isinstance(e, EventIndexCleared):
                logger.debug('etcd event index cleared, watch %s from now',
                             self.key)
                self.index = 0
            else:
                logger.warning('etcd error during watching %s, %s',
                               self.key, e)
            await asyncio.sleep(RETRY_DELAY)
            return True

        self.attempts = len(client.cluster)
        node = resp.node
        if self.index and node.modified_index < self.index:
            logger.debug('drop stale event %s on %s, watching from %s',
                         node.modified_index, self.key, self.index)
            return True

        logger.debug('watched change on %s, action %s, modified %s',
                     self.key, resp.action.value, node.modified_index)
        self.index = node.modified_index + 1
        self.events += 1
        if await self._notify(resp):
            return False
        return not self.once

    async def _notify(self, result: WatchResult) -> bool:
        assert self.callback is not None
        try:
            r = self.callback(self.user_data, result)
            if inspect.isawaitable(r):
                r = await r
        except Exception:
            logger.exception('watcher callback failed on %s', self.key)
            return True
        return bool(r)

    def __repr__(self) -> str:
        return '<Watcher key={!r} index={} recursive={} once={} state={}>'.format(
            self.key, self.index, self.recursive, self.once,
            self.state.value)

class WatcherRegistry:
    '''
    A collection of watchers, each watcher knows its own position so
    it can be removed in constant time.
    '''
    def __init__(self, watchers: Iterable[Watcher]=()) -> None:
        self._watchers: List[Watcher] = []
        for w in watchers:
            self.add(w)

    def add(self, watcher: Watcher) -> int:
        if watcher.registry is not None:
            raise ValueError('{!r} is already registered'.format(watcher))
        if watcher.state is WatcherState.DESTROYED:
            raise ValueError('{!r} is released'.format(watcher))
        watcher.array_index = len(self._watchers)
        watcher.registry = self
        self._watchers.append(watcher)
        return watcher.array_index

    def remove(self, watcher: Watcher) -> None:
        if watcher not in self:
            raise ValueError('{!r} is not registered'.format(watcher))
        pos = watcher.array_index
        last = self._watchers.pop()
        if last is not watcher:
            # move the last one into the freed slot
            self._watchers[pos] = last
            last.array_index = pos
        watcher.array_index = -1
        watcher.registry = None

    def __contains__(self, watcher: object) -> bool:
        if not isinstance(watcher, Watcher) or watcher.registry is not self:
            return False
        pos = watcher.array_index
        return (0 <= pos < len(self._watchers) and
                self._watchers[pos] is watcher)

    def __getitem__(self, pos: int) -> Watcher:
        return self._watchers[pos]

    def __len__(self) -> int:
        return len(self._watchers)

    def __iter__(self) -> Iterator[Watcher]:
        return iter(list(self._watchers))

    def __repr__(self) -> str:
        return '<WatcherRegistry {} watchers>'.format(len(self._watchers))
