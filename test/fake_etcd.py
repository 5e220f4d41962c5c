from typing import Dict, Any, List, Tuple, Optional
import json
import asyncio
from aiohttp import web

class FakeEtcd:
    '''
    A tiny in-memory etcd v2 keys api, good enough for the client tests.
    '''
    address: str = ''

    def __init__(self, name: str='etcd0') -> None:
        self.name = name
        self.index = 1
        self.cleared_before = 0
        self.store: Dict[str, Dict[str, Any]] = {
            '/': self._entry(None, True, 0, 0, 0),
        }
        self.events: List[Tuple[int, str, Dict[str, Any]]] = []
        self.requests: List[Tuple[str, str, Dict[str, str], Optional[str]]] = []
        self.members: List[Dict[str, Any]] = []
        self.waiting = 0
        self.closing = False
        self._changed: Optional[asyncio.Event] = None

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_route('*', '/v2/keys{key:.*}', self.handle_keys)
        app.router.add_get('/v2/members', self.handle_members)
        app.router.add_get('/v2/stats/{kind}', self.handle_stats)
        app.on_shutdown.append(self.on_shutdown)
        return app

    async def on_shutdown(self, app: web.Application) -> None:
        self.closing = True
        self._notify()

    def keys_requests(self, method: str) -> List[Tuple[str, Dict[str, str]]]:
        return [(key, params)
                for m, key, params, _ in self.requests
                if m == method]

    async def wait_for_waiters(self, n: int=1, timeout: float=5.0) -> None:
        async def _wait() -> None:
            while self.waiting < n:
                await asyncio.sleep(0.01)
        await asyncio.wait_for(_wait(), timeout)

    # helpers
    @staticmethod
    def _entry(value: Optional[str], is_dir: bool, created: int,
               modified: int, ttl: int) -> Dict[str, Any]:
        return {
            'value': value,
            'dir': is_dir,
            'createdIndex': created,
            'modifiedIndex': modified,
            'ttl': ttl,
        }

    @staticmethod
    def _parent(key: str) -> str:
        parent = key.rsplit('/', 1)[0]
        return parent or '/'

    def _children(self, key: str) -> List[str]:
        return [k for k in self.store
                if k != '/' and k != key and self._parent(k) == key]

    def _node(self, key: str, recursive: bool=False,
              sort: bool=False, depth: int=0) -> Dict[str, Any]:
        e = self.store[key]
        n: Dict[str, Any] = {
            'key': key,
            'createdIndex': e['createdIndex'],
            'modifiedIndex': e['modifiedIndex'],
        }
        if e['ttl']:
            n['ttl'] = e['ttl']
            n['expiration'] = '2030-01-02T03:04:05.123456789Z'
        if e['dir']:
            n['dir'] = True
            if depth == 0 or recursive:
                children = self._children(key)
                if sort:
                    children.sort()
                if children:
                    n['nodes'] = [self._node(c, recursive, sort, depth + 1)
                                  for c in children]
        else:
            n['value'] = e['value']
        return n

    def _headers(self) -> Dict[str, str]:
        return {
            'X-Etcd-Index': str(self.index),
            'X-Raft-Index': str(self.index + 100),
            'X-Raft-Term': '2',
        }

    def _error(self, code: int, message: str, cause: str,
               status: int) -> web.Response:
        return web.json_response({
            'errorCode': code,
            'message': message,
            'cause': cause,
            'index': self.index,
        }, status=status, headers=self._headers())

    def _reply(self, body: Dict[str, Any], status: int=200) -> web.Response:
        return web.json_response(body, status=status,
                                 headers=self._headers())

    def _notify(self) -> None:
        ev = self._changed
        self._changed = None
        if ev is not None:
            ev.set()

    def _emit(self, key: str, body: Dict[str, Any]) -> None:
        self.events.append((self.index, key, body))
        self._notify()

    def _ensure_parents(self, key: str) -> Optional[web.Response]:
        parents = []
        parent = self._parent(key)
        while parent != '/':
            parents.append(parent)
            parent = self._parent(parent)
        for p in reversed(parents):
            e = self.store.get(p)
            if e is None:
                self.store[p] = self._entry(None, True, self.index,
                                            self.index, 0)
            elif not e['dir']:
                return self._error(104, 'Not a directory', p, 403)
        return None

    def _remove(self, key: str) -> None:
        for k in list(self.store):
            if k == key or k.startswith(key + '/'):
                del self.store[k]

    # handlers
    async def handle_members(self, request: web.Request) -> web.Response:
        self.requests.append(('GET', '/v2/members', {}, None))
        return web.json_response({'members': self.members})

    async def handle_stats(self, request: web.Request) -> web.Response:
        kind = request.match_info['kind']
        return web.json_response({'name': self.name, 'kind': kind})

    async def handle_keys(self, request: web.Request) -> web.Response:
        key = '/' + request.match_info['key'].strip('/')
        params = dict(request.query)
        if request.method in ('PUT', 'POST'):
            form = await request.post()
            params.update((k, str(v)) for k, v in form.items())
        self.requests.append((request.method, key, params,
                              request.headers.get('Authorization')))

        if request.method == 'GET':
            if params.get('wait') == 'true':
                return await self._watch(key, params)
            return self._get(key, params)
        elif request.method == 'PUT':
            return self._put(key, params)
        elif request.method == 'POST':
            return self._post(key, params)
        elif request.method == 'DELETE':
            return self._delete(key, params)
        return web.Response(status=405)

    def _get(self, key: str, params: Dict[str, str]) -> web.Response:
        if key not in self.store:
            return self._error(100, 'Key not found', key, 404)
        node = self._node(key,
                          recursive=params.get('recursive') == 'true',
                          sort=params.get('sorted') == 'true')
        return self._reply({'action': 'get', 'node': node})

    def _put(self, key: str, params: Dict[str, str]) -> web.Response:
        value = params.get('value')
        is_dir = params.get('dir') == 'true'
        ttl = int(params['ttl']) if params.get('ttl') else 0
        prev_exist = params.get('prevExist')
        prev_value = params.get('prevValue')
        prev_index = params.get('prevIndex')
        refresh = params.get('refresh') == 'true'
        cur = self.store.get(key)

        if prev_exist == 'false' and cur is not None:
            return self._error(105, 'Key already exists', key, 412)
        if (prev_exist == 'true' or refresh) and cur is None:
            return self._error(100, 'Key not found', key, 404)

        if prev_value is not None or prev_index is not None:
            if cur is None:
                return self._error(100, 'Key not found', key, 404)
            if cur['dir']:
                return self._error(102, 'Not a file', key, 403)
            if prev_value is not None and cur['value'] != prev_value:
                return self._error(101, 'Compare failed', '[{} != {}]'.format(
                    prev_value, cur['value']), 412)
            if prev_index is not None and cur['modifiedIndex'] != int(prev_index):
                return self._error(101, 'Compare failed', '[{} != {}]'.format(
                    prev_index, cur['modifiedIndex']), 412)
            action = 'compareAndSwap'
        elif prev_exist == 'false':
            action = 'create'
        elif prev_exist == 'true':
            action = 'update'
        else:
            action = 'set'

        if cur is not None and cur['dir'] != is_dir:
            return self._error(102, 'Not a file', key, 403)
        if not is_dir and value is None and not refresh:
            return self._error(200, 'Value is Required in POST form',
                               'Update', 400)

        err = self._ensure_parents(key)
        if err is not None:
            return err

        prev_node = self._node(key) if cur is not None else None
        self.index += 1
        if refresh:
            assert cur is not None
            value = cur['value']
        if cur is not None and action in ('update', 'compareAndSwap'):
            created = cur['createdIndex']
        else:
            created = self.index
        self.store[key] = self._entry(None if is_dir else value, is_dir,
                                      created, self.index, ttl)

        body: Dict[str, Any] = {'action': action, 'node': self._node(key)}
        if prev_node is not None:
            body['prevNode'] = prev_node
        self._emit(key, body)
        return self._reply(body, status=200 if cur is not None else 201)

    def _post(self, key: str, params: Dict[str, str]) -> web.Response:
        cur = self.store.get(key)
        if cur is not None and not cur['dir']:
            return self._error(104, 'Not a directory', key, 403)
        err = self._ensure_parents(key + '/x')
        if err is not None:
            return err
        self.index += 1
        child = '{}/{:020d}'.format(key.rstrip('/'), self.index)
        ttl = int(params['ttl']) if params.get('ttl') else 0
        self.store[child] = self._entry(params.get('value'), False,
                                        self.index, self.index, ttl)
        body = {'action': 'create', 'node': self._node(child)}
        self._emit(child, body)
        return self._reply(body, status=201)

    def _delete(self, key: str, params: Dict[str, str]) -> web.Response:
        cur = self.store.get(key)
        if cur is None:
            return self._error(100, 'Key not found', key, 404)
        is_dir = params.get('dir') == 'true'
        recursive = params.get('recursive') == 'true'
        prev_value = params.get('prevValue')
        prev_index = params.get('prevIndex')

        action = 'delete'
        if prev_value is not None or prev_index is not None:
            if prev_value is not None and cur['value'] != prev_value:
                return self._error(101, 'Compare failed', '[{} != {}]'.format(
                    prev_value, cur['value']), 412)
            if prev_index is not None and cur['modifiedIndex'] != int(prev_index):
                return self._error(101, 'Compare failed', '[{} != {}]'.format(
                    prev_index, cur['modifiedIndex']), 412)
            action = 'compareAndDelete'

        if cur['dir']:
            if not (is_dir or recursive):
                return self._error(102, 'Not a file', key, 403)
            if self._children(key) and not recursive:
                return self._error(108, 'Directory not empty', key, 403)

        prev_node = self._node(key)
        self.index += 1
        self._remove(key)
        node: Dict[str, Any] = {
            'key': key,
            'createdIndex': cur['createdIndex'],
            'modifiedIndex': self.index,
        }
        if cur['dir']:
            node['dir'] = True
        body = {'action': action, 'node': node, 'prevNode': prev_node}
        self._emit(key, body)
        return self._reply(body)

    def _match(self, key: str, event_key: str, recursive: bool) -> bool:
        if event_key == key:
            return True
        return recursive and event_key.startswith(key.rstrip('/') + '/')

    async def _watch(self, key: str, params: Dict[str, str]) -> web.Response:
        recursive = params.get('recursive') == 'true'
        wait_index = int(params.get('waitIndex') or 0)
        if wait_index and wait_index < self.cleared_before:
            return self._error(401, 'The event in requested index is outdated '
                               'and cleared', 'the requested history has been '
                               'cleared [{}/{}]'.format(self.cleared_before,
                                                        wait_index), 400)
        start = wait_index or self.index + 1

        self.waiting += 1
        try:
            while not self.closing:
                for index, event_key, body in self.events:
                    if index >= start and self._match(key, event_key, recursive):
                        return self._reply(body)
                if self._changed is None:
                    self._changed = asyncio.Event()
                await self._changed.wait()
        finally:
            self.waiting -= 1
        return web.Response(status=503, text='shutting down')

class ScriptedEtcd:
    '''
    Answers every keys request with the next scripted
    (status, body) pair, waiting forever once the script runs out.
    '''
    address: str = ''

    def __init__(self, script: List[Tuple[int, Any]]) -> None:
        self.script = list(script)
        self.hits = 0
        self.closing = False
        self._closed: Optional[asyncio.Event] = None

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_route('*', '/v2/{path:.*}', self.handle)
        app.on_shutdown.append(self.on_shutdown)
        return app

    async def on_shutdown(self, app: web.Application) -> None:
        self.closing = True
        if self._closed is not None:
            self._closed.set()

    async def handle(self, request: web.Request) -> web.Response:
        self.hits += 1
        if not self.script:
            if self._closed is None:
                self._closed = asyncio.Event()
            if not self.closing:
                await self._closed.wait()
            return web.Response(status=503, text='shutting down')

        status, body = self.script.pop(0)
        if not isinstance(body, str):
            body = json.dumps(body)
        return web.Response(status=status, text=body,
                            content_type='application/json',
                            headers={'X-Etcd-Index': '1'})

class DroppingServer:
    '''
    Accepts connections and closes them at once, counting them.
    '''
    address: str = ''

    def __init__(self) -> None:
        self.connections = 0
        self._server: Optional[asyncio.AbstractServer] = None

    async def start(self) -> None:
        self._server = await asyncio.start_server(
            self._on_connect, '127.0.0.1', 0)
        port = self._server.sockets[0].getsockname()[1]
        self.address = 'http://127.0.0.1:{}'.format(port)

    async def _on_connect(self, reader: asyncio.StreamReader,
                          writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        writer.close()

    async def close(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
