from typing import Dict, Any, List, Tuple, Iterable, Mapping, Optional, Set
import asyncio
import logging
import ssl
import aiohttp
from aiocetcd.exceptions import (
    EtcdError, SendRequestFailed, ClusterFailed, ResponseParseFailed)
from aiocetcd.response import Response, parse_response, parse_json, log_response
from aiocetcd.cluster import (
    ClusterAddresses, Member, parse_members, member_addresses)
from aiocetcd.watcher import Watcher, WatcherRegistry, WatcherCallback
from aiocetcd.watch import WatchId, WatchGroup, watch_multi, stop_watcher
from aiocetcd.config import Config, get_config
from aiocetcd.utils import encode_params, get_ssl_context

logger = logging.getLogger(__name__)

DEFAULT_ADDRESSES = ('http://127.0.0.1:2379',)

RawResponse = Tuple[int, str, Mapping[str, str]]

class Settings:
    verbose: bool = False
    ttl: int = 0
    connect_timeout: float = 1.0
    read_timeout: float = 5.0
    write_timeout: float = 5.0
    watch_timeout: Optional[float] = None
    user: Optional[str] = None
    password: Optional[str] = None

    def __init__(self, **kw: Any) -> None:
        for k, v in kw.items():
            if not hasattr(Settings, k):
                raise TypeError('unknown setting {}'.format(k))
            setattr(self, k, v)

class Client:
    '''
    An etcd v2 client aware of every member of the cluster.

    A request goes to the picked member first and moves on to the next
    one when the transport fails. A client belongs to one event loop,
    sharing it between threads needs external locking.
    '''
    last_error: Optional[EtcdError] = None
    keys_space: str = 'v2/keys'
    stat_space: str = 'v2/stats'
    member_space: str = 'v2/members'

    def __init__(self,
                 addresses: Iterable[str]=DEFAULT_ADDRESSES,
                 *,
                 keys_space: str='v2/keys',
                 stat_space: str='v2/stats',
                 member_space: str='v2/members',
                 **settings: Any) -> None:
        self._cluster = ClusterAddresses(addresses)
        self.keys_space = keys_space.strip('/')
        self.stat_space = stat_space.strip('/')
        self.member_space = member_space.strip('/')
        self.settings = Settings(**settings)
        self.last_error = None
        self.watchers = WatcherRegistry()
        self._active: Set[Watcher] = set()
        self._groups: Dict[WatchId, WatchGroup] = {}
        self._next_watch_id = 1
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_stale = False
        self._ssl_context: Optional[ssl.SSLContext] = None

    @classmethod
    def from_config(cls, config: Optional[Config]=None) -> 'Client':
        if config is None:
            config = get_config()
        client = cls(config.addresses,
                     keys_space=config.keys_space,
                     stat_space=config.stat_space,
                     member_space=config.member_space,
                     verbose=config.verbose,
                     ttl=config.ttl,
                     connect_timeout=config.connect_timeout,
                     read_timeout=config.read_timeout,
                     write_timeout=config.write_timeout,
                     watch_timeout=config.watch_timeout)
        if config.user:
            client.setup_user(config.user, config.password)
        if config.tls_ca or config.tls_cert:
            client.setup_tls(config.tls_ca, config.tls_cert, config.tls_key)
        return client

    @property
    def cluster(self) -> ClusterAddresses:
        return self._cluster

    @property
    def addresses(self) -> Tuple[str, ...]:
        return self._cluster.addresses

    @property
    def picked(self) -> int:
        return self._cluster.picked

    def setup_user(self, user: str, password: Optional[str]) -> None:
        self.settings.user = user
        self.settings.password = password

    def setup_tls(self, ca: Optional[str]=None, cert: Optional[str]=None,
                  key: Optional[str]=None) -> None:
        self._ssl_context = get_ssl_context(ca, cert, key)
        self._session_stale = True

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None and self._session_stale:
            await self._session.close()
            self._session = None

        if self._session is None or self._session.closed:
            if self._ssl_context is not None:
                conn = aiohttp.TCPConnector(ssl=self._ssl_context)
            else:
                conn = aiohttp.TCPConnector()
            self._session = aiohttp.ClientSession(connector=conn)
            self._session_stale = False
        return self._session

    def _auth(self) -> Optional[aiohttp.BasicAuth]:
        if self.settings.user:
            return aiohttp.BasicAuth(self.settings.user,
                                     self.settings.password or '')
        return None

    def _timeout(self, method: str, wait: bool=False) -> aiohttp.ClientTimeout:
        if wait:
            sock_read = None
        elif method == 'GET':
            sock_read = self.settings.read_timeout
        else:
            sock_read = self.settings.write_timeout
        return aiohttp.ClientTimeout(
            total=None,
            sock_connect=self.settings.connect_timeout,
            sock_read=sock_read)

    def _ttl(self, ttl: Optional[int]) -> Optional[int]:
        if ttl is None:
            ttl = self.settings.ttl
        if ttl and ttl > 0:
            return ttl
        return None

    @staticmethod
    def _url(address: str, space: str, key: str) -> str:
        if key and not key.startswith('/'):
            key = '/' + key
        return '{}/{}{}'.format(address, space, key)

    async def _send(self, address: str, method: str, space: str, key: str,
                    params: Dict[str, Any],
                    timeout: aiohttp.ClientTimeout) -> RawResponse:
        url = self._url(address, space, key)
        kw: Dict[str, Any] = {}
        if method in ('GET', 'DELETE', 'HEAD'):
            kw['params'] = encode_params(params)
        else:
            kw['data'] = encode_params(params)

        level = logging.INFO if self.settings.verbose else logging.DEBUG
        logger.log(level, 'etcd request %s %s %s', method, url, params)
        session = await self._get_session()
        try:
            async with session.request(method, url,
                                       auth=self._auth(),
                                       timeout=timeout,
                                       **kw) as resp:
                body = await resp.text(errors='replace')
                logger.log(level, 'etcd response %s %s %s',
                           method, url, resp.status)
                return resp.status, body, resp.headers
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SendRequestFailed(
                '{} {} failed: {!r}'.format(method, url, e),
                cause=address)

    async def _dispatch(self, method: str, space: str, key: str,
                        params: Dict[str, Any],
                        timeout: Optional[aiohttp.ClientTimeout]=None) -> RawResponse:
        '''
        Send a request to the picked address, moving on to the
        next address after each transport failure.
        '''
        if timeout is None:
            timeout = self._timeout(method)

        cluster = self._cluster
        addresses = cluster.addresses
        start = cluster.picked
        last_err: Optional[SendRequestFailed] = None

        for i in range(len(addresses)):
            pos = (start + i) % len(addresses)
            address = addresses[pos]
            try:
                raw = await self._send(address, method, space, key,
                                       params, timeout)
            except SendRequestFailed as e:
                logger.warning('etcd request failed on %s, %s',
                               address, e.message)
                last_err = e
                if cluster.addresses is addresses:
                    cluster.picked = (pos + 1) % len(addresses)
                continue

            if cluster.addresses is addresses:
                cluster.picked = pos
            return raw

        raise ClusterFailed(
            'request {} {} failed on every cluster address'.format(method, key),
            cause=last_err.message if last_err else None)

    async def _request(self, method: str, key: str,
                       params: Optional[Dict[str, Any]]=None,
                       timeout: Optional[aiohttp.ClientTimeout]=None) -> Response:
        try:
            status, body, headers = await self._dispatch(
                method, self.keys_space, key, params or {}, timeout)
            resp = parse_response(status, body, headers)
        except EtcdError as e:
            self.last_error = e
            raise
        log_response(resp, logger)
        return resp

    async def _request_json(self, space: str, key: str) -> Any:
        try:
            status, body, _ = await self._dispatch('GET', space, key, {})
            return parse_json(status, body)
        except EtcdError as e:
            self.last_error = e
            raise

    async def _watch_poll(self, watcher: Watcher) -> Response:
        '''
        One long poll for a watcher against the picked address only,
        the watcher does its own failover.
        '''
        address = self._cluster.current
        poll = self._send(address, 'GET', self.keys_space, watcher.key,
                          watcher.params(),
                          self._timeout('GET', wait=True))
        try:
            if self.settings.watch_timeout:
                status, body, headers = await asyncio.wait_for(
                    poll, self.settings.watch_timeout)
            else:
                status, body, headers = await poll
        except SendRequestFailed:
            if self._cluster.current == address:
                self._cluster.advance()
            raise
        return parse_response(status, body, headers)

    # key operations
    async def get(self, key: str) -> Response:
        return await self._request('GET', key)

    async def directory(self, key: str, sort: bool=False,
                        recursive: bool=False) -> Response:
        params: Dict[str, Any] = {}
        if sort:
            params['sorted'] = True
        if recursive:
            params['recursive'] = True
        return await self._request('GET', key, params)

    async def set(self, key: str, value: str,
                  ttl: Optional[int]=None) -> Response:
        return await self._request('PUT', key, {
            'value': value,
            'ttl': self._ttl(ttl),
        })

    async def make_directory(self, key: str,
                             ttl: Optional[int]=None) -> Response:
        return await self._request('PUT', key, {
            'dir': True,
            'prevExist': False,
            'ttl': self._ttl(ttl),
        })

    async def dir_set(self, key: str, ttl: Optional[int]=None) -> Response:
        return await self._request('PUT', key, {
            'dir': True,
            'ttl': self._ttl(ttl),
        })

    async def dir_update(self, key: str,
                         ttl: Optional[int]=None) -> Response:
        return await self._request('PUT', key, {
            'dir': True,
            'prevExist': True,
            'ttl': self._ttl(ttl),
        })

    async def update(self, key: str, value: Optional[str],
                     ttl: Optional[int]=None,
                     refresh: bool=False) -> Response:
        params: Dict[str, Any] = {
            'prevExist': True,
            'ttl': self._ttl(ttl),
        }
        if refresh:
            params['refresh'] = True
        else:
            params['value'] = value
        return await self._request('PUT', key, params)

    async def create(self, key: str, value: str,
                     ttl: Optional[int]=None) -> Response:
        return await self._request('PUT', key, {
            'value': value,
            'prevExist': False,
            'ttl': self._ttl(ttl),
        })

    async def create_in_order(self, key: str, value: str,
                              ttl: Optional[int]=None) -> Response:
        return await self._request('POST', key, {
            'value': value,
            'ttl': self._ttl(ttl),
        })

    async def delete(self, key: str) -> Response:
        return await self._request('DELETE', key)

    async def dir_remove(self, key: str, recursive: bool=False) -> Response:
        params: Dict[str, Any] = {'dir': True}
        if recursive:
            params['recursive'] = True
        return await self._request('DELETE', key, params)

    async def watch(self, key: str, index: int=0) -> Response:
        return await self._watch_once(key, index, False)

    async def watch_recursive(self, key: str, index: int=0) -> Response:
        return await self._watch_once(key, index, True)

    async def _watch_once(self, key: str, index: int,
                          recursive: bool) -> Response:
        params: Dict[str, Any] = {'wait': True}
        if recursive:
            params['recursive'] = True
        if index:
            params['waitIndex'] = index
        return await self._request('GET', key, params,
                                   self._timeout('GET', wait=True))

    async def compare_and_swap(self, key: str, value: str, prev: str,
                               ttl: Optional[int]=None) -> Response:
        return await self._request('PUT', key, {
            'value': value,
            'prevValue': prev,
            'ttl': self._ttl(ttl),
        })

    async def compare_and_swap_by_index(self, key: str, value: str,
                                        prev_index: int,
                                        ttl: Optional[int]=None) -> Response:
        return await self._request('PUT', key, {
            'value': value,
            'prevIndex': prev_index,
            'ttl': self._ttl(ttl),
        })

    async def compare_and_delete(self, key: str, prev: str) -> Response:
        return await self._request('DELETE', key, {'prevValue': prev})

    async def compare_and_delete_by_index(self, key: str,
                                          prev_index: int) -> Response:
        return await self._request('DELETE', key, {'prevIndex': prev_index})

    # cluster
    async def members(self) -> List[Member]:
        data = await self._request_json(self.member_space, '')
        try:
            return parse_members(data)
        except ResponseParseFailed as e:
            self.last_error = e
            raise

    async def sync_cluster(self) -> bool:
        try:
            addresses = member_addresses(await self.members())
            if not addresses:
                raise ResponseParseFailed('no client url in member list')
        except EtcdError as e:
            self.last_error = e
            logger.warning('sync cluster failed, keep addresses %s, %s',
                           self._cluster.addresses, e)
            return False

        self._cluster.replace(addresses)
        logger.info('cluster addresses synced: %s', addresses)
        return True

    async def stats_leader(self) -> Dict[str, Any]:
        return await self._request_json(self.stat_space, 'leader')

    async def stats_self(self) -> Dict[str, Any]:
        return await self._request_json(self.stat_space, 'self')

    async def stats_store(self) -> Dict[str, Any]:
        return await self._request_json(self.stat_space, 'store')

    # watchers
    def watcher_create(self, key: str, index: int=0,
                       recursive: bool=False, once: bool=False,
                       callback: Optional[WatcherCallback]=None,
                       user_data: Any=None) -> Watcher:
        return Watcher(self, key, index=index, recursive=recursive,
                       once=once, callback=callback, user_data=user_data)

    def watcher_add(self, watcher: Watcher) -> int:
        return self.watchers.add(watcher)

    def watcher_del(self, watcher: Watcher) -> None:
        self.watchers.remove(watcher)

    async def watcher_multi(self,
                            watchers: Optional[Iterable[Watcher]]=None) -> None:
        await watch_multi(self, watchers)

    def watcher_multi_async(self,
                            watchers: Optional[Iterable[Watcher]]=None) -> WatchId:
        if watchers is None:
            watchers = self.watchers
        wid = self._next_watch_id
        self._next_watch_id += 1
        group = WatchGroup(self, wid, watchers)
        group.start()
        self._groups[wid] = group
        return wid

    async def watcher_multi_async_stop(self, wid: WatchId) -> None:
        group = self._groups.pop(wid, None)
        if group is None:
            raise ValueError('unknown watch group {}'.format(wid))
        await group.stop()

    async def watcher_stop(self, watcher: Watcher) -> bool:
        return await stop_watcher(watcher)

    async def close(self) -> None:
        for wid in list(self._groups):
            await self.watcher_multi_async_stop(wid)
        for w in list(self._active):
            await stop_watcher(w)
        for w in self.watchers:
            w.release()

        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> 'Client':
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return '<Client addresses={!r} picked={}>'.format(
            self._cluster.addresses, self._cluster.picked)
