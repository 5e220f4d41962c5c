from typing import List, Iterable, Optional, TYPE_CHECKING
import asyncio
import logging
from aiocetcd.watcher import Watcher, WatcherState

if TYPE_CHECKING:
    from aiocetcd.client import Client

logger = logging.getLogger(__name__)

WatchId = int

def start_watcher(client: 'Client', watcher: Watcher) -> 'asyncio.Task[None]':
    if watcher.client is not client:
        raise ValueError('{!r} belongs to another client'.format(watcher))
    if watcher.state is not WatcherState.CREATED:
        raise ValueError('cannot start {!r}'.format(watcher))

    watcher.state = WatcherState.ACTIVE
    client._active.add(watcher)
    task = asyncio.ensure_future(watcher.run())
    watcher._task = task
    return task

def start_watchers(client: 'Client',
                   watchers: Iterable[Watcher]) -> List['asyncio.Task[None]']:
    tasks = []
    for w in list(watchers):
        if w.state is not WatcherState.CREATED:
            logger.debug('skip %r', w)
            continue
        tasks.append(start_watcher(client, w))
    return tasks

async def join_watchers(tasks: List['asyncio.Task[None]']) -> None:
    '''
    Wait until every watcher task finished, cancelling
    the remaining ones if the wait itself is cancelled.
    '''
    if not tasks:
        return
    try:
        await asyncio.wait(tasks)
    finally:
        for t in tasks:
            t.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for r in results:
            if (isinstance(r, Exception) and
                    not isinstance(r, asyncio.CancelledError)):
                logger.error('watcher task failed: %r', r)

async def watch_multi(client: 'Client',
                      watchers: Optional[Iterable[Watcher]]=None) -> None:
    if watchers is None:
        watchers = client.watchers
    tasks = start_watchers(client, watchers)
    await join_watchers(tasks)

def _discard(watcher: Watcher) -> None:
    # a task cancelled before its first step never runs Watcher.run's cleanup
    if watcher.state is WatcherState.ACTIVE:
        watcher.state = WatcherState.STOPPED
    watcher.client._active.discard(watcher)

async def stop_watcher(watcher: Watcher) -> bool:
    if watcher.state is WatcherState.CREATED:
        watcher.state = WatcherState.STOPPED
        return True

    if watcher.state is not WatcherState.ACTIVE:
        return False

    watcher.state = WatcherState.STOPPED
    task = watcher._task
    if task is None or task is asyncio.current_task():
        # stopped from its own callback, the loop ends after it returns
        return True

    # interrupts the pending http read
    task.cancel()
    await asyncio.wait([task])
    _discard(watcher)
    return True

class WatchGroup:
    '''
    A set of watchers driven by one worker task in the background.
    '''
    id: WatchId
    watchers: List[Watcher]

    def __init__(self, client: 'Client', wid: WatchId,
                 watchers: Iterable[Watcher]) -> None:
        self.client = client
        self.id = wid
        self.watchers = []
        self.tasks: List['asyncio.Task[None]'] = []
        self._task: Optional['asyncio.Task[None]'] = None
        self._pending = list(watchers)

    def start(self) -> None:
        assert self._task is None
        self.tasks = start_watchers(self.client, self._pending)
        self.watchers = [w for w in self._pending if w._task in self.tasks]
        self._pending = []
        self._task = asyncio.ensure_future(join_watchers(self.tasks))
        logger.debug('watch group %s started with %s watchers',
                     self.id, len(self.tasks))

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def stop(self) -> None:
        task = self._task
        if task is None:
            return
        task.cancel()
        for t in self.tasks:
            t.cancel()
        # the worker may be cancelled before it ever ran, join the
        # watcher tasks here as well
        results = await asyncio.gather(task, *self.tasks,
                                       return_exceptions=True)
        for w in self.watchers:
            _discard(w)
        if isinstance(results[0], Exception):
            logger.error('watch group %s failed: %r', self.id, results[0])
        logger.debug('watch group %s stopped', self.id)
