from typing import Dict, Any, List, Iterator, Mapping, Optional
import enum
import json
import logging
from datetime import datetime
from dateutil.parser import isoparse
from aiocetcd.exceptions import EtcdError, ResponseParseFailed, error_from_json

class Action(enum.Enum):
    SET = 'set'
    GET = 'get'
    UPDATE = 'update'
    CREATE = 'create'
    DELETE = 'delete'
    EXPIRE = 'expire'
    COMPARE_AND_SWAP = 'compareAndSwap'
    COMPARE_AND_DELETE = 'compareAndDelete'

class Node:
    key: str = ''
    value: Optional[str] = None
    dir: bool = False
    nodes: Optional[List['Node']] = None
    expiration: Optional[datetime] = None
    ttl: int = -1
    created_index: int = 0
    modified_index: int = 0

    def __init__(self, key: str='', value: Optional[str]=None,
                 dir: bool=False, nodes: Optional[List['Node']]=None,
                 expiration: Optional[datetime]=None, ttl: int=-1,
                 created_index: int=0, modified_index: int=0) -> None:
        if dir:
            assert value is None, key
            nodes = nodes if nodes is not None else []
        else:
            assert not nodes, key
            nodes = None
        self.key = key
        self.value = value
        self.dir = dir
        self.nodes = nodes
        self.expiration = expiration
        self.ttl = ttl
        self.created_index = created_index
        self.modified_index = modified_index

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> 'Node':
        if not isinstance(data, dict):
            raise ResponseParseFailed('node is not an object')

        is_dir = bool(data.get('dir', False))
        children = data.get('nodes')
        nodes: Optional[List[Node]] = None
        if is_dir:
            if children is None:
                children = []
            if not isinstance(children, list):
                raise ResponseParseFailed(
                    'invalid nodes', cause=data.get('key'))
            # children first, the parent is built from them
            nodes = [cls.from_json(c) for c in children]
        elif children:
            raise ResponseParseFailed(
                'leaf node with children', cause=data.get('key'))

        value = data.get('value')
        if is_dir:
            value = None
        elif value is not None and not isinstance(value, str):
            raise ResponseParseFailed(
                'invalid value', cause=data.get('key'))

        expiration = None
        ttl = -1
        if 'ttl' in data:
            ttl = _as_int(data['ttl'], 'ttl')
            exp = data.get('expiration')
            if exp:
                try:
                    expiration = isoparse(exp)
                except (TypeError, ValueError):
                    raise ResponseParseFailed(
                        'invalid expiration', cause=str(exp))

        created_index = _as_int(data.get('createdIndex', 0), 'createdIndex')
        modified_index = _as_int(data.get('modifiedIndex', created_index),
                                 'modifiedIndex')
        if modified_index < created_index:
            raise ResponseParseFailed(
                'modifiedIndex before createdIndex', cause=data.get('key'))

        return cls(key=data.get('key', '/'),
                   value=value,
                   dir=is_dir,
                   nodes=nodes,
                   expiration=expiration,
                   ttl=ttl,
                   created_index=created_index,
                   modified_index=modified_index)

    @property
    def children(self) -> List['Node']:
        return self.nodes or []

    @property
    def is_leaf(self) -> bool:
        return not self.dir

    def walk(self) -> Iterator['Node']:
        yield self
        for c in self.children:
            for cc in c.walk():
                yield cc

    def as_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'key': self.key,
            'createdIndex': self.created_index,
            'modifiedIndex': self.modified_index,
        }
        if self.dir:
            data['dir'] = True
            data['nodes'] = [c.as_json() for c in self.children]
        else:
            data['value'] = self.value
        if self.ttl >= 0:
            data['ttl'] = self.ttl
            if self.expiration is not None:
                data['expiration'] = self.expiration.isoformat()
        return data

    def __repr__(self) -> str:
        if self.dir:
            return '<Node dir key={!r} children={}>'.format(
                self.key, len(self.children))
        return '<Node key={!r} value={!r}>'.format(self.key, self.value)

class Response:
    action: Action
    node: Node
    prev_node: Optional[Node] = None
    etcd_index: int = 0
    raft_index: int = 0
    raft_term: int = 0

    def __init__(self, body: Dict[str, Any],
                 headers: Optional[Mapping[str, str]]=None) -> None:
        self.body = body
        self._parse_body(body)
        self._parse_headers(headers or {})

    def _parse_body(self, body: Dict[str, Any]) -> None:
        if not isinstance(body, dict):
            raise ResponseParseFailed('response is not an object')

        try:
            self.action = Action(body.get('action'))
        except ValueError:
            raise ResponseParseFailed(
                'invalid action', cause=str(body.get('action')))

        if 'node' not in body:
            raise ResponseParseFailed('node missing')
        self.node = Node.from_json(body['node'])

        prev = body.get('prevNode')
        self.prev_node = Node.from_json(prev) if prev else None

    def _parse_headers(self, headers: Mapping[str, str]) -> None:
        self.etcd_index = _header_int(headers, 'X-Etcd-Index')
        self.raft_index = _header_int(headers, 'X-Raft-Index')
        self.raft_term = _header_int(headers, 'X-Raft-Term')

    def as_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'action': self.action.value,
            'node': self.node.as_json(),
        }
        if self.prev_node is not None:
            data['prevNode'] = self.prev_node.as_json()
        return data

    def __repr__(self) -> str:
        return '<Response action={} node={!r} etcd_index={}>'.format(
            self.action.value, self.node, self.etcd_index)

def _as_int(v: Any, name: str) -> int:
    if isinstance(v, bool):
        raise ResponseParseFailed('invalid {}'.format(name), cause=str(v))
    try:
        return int(v)
    except (TypeError, ValueError):
        raise ResponseParseFailed('invalid {}'.format(name), cause=str(v))

def _header_int(headers: Mapping[str, str], name: str) -> int:
    v = headers.get(name)
    if v is None:
        return 0
    try:
        return int(v)
    except ValueError:
        raise ResponseParseFailed('invalid header {}'.format(name), cause=v)

def parse_json(status: int, body: str) -> Any:
    '''
    Decode a response body, raising the etcd error it carries
    if the status is not a success.
    '''
    try:
        data = json.loads(body)
    except ValueError:
        data = None

    if not 200 <= status < 300:
        err: Optional[EtcdError] = None
        if isinstance(data, dict) and 'errorCode' in data:
            try:
                err = error_from_json(data)
            except (TypeError, ValueError):
                err = None
        if err is not None:
            raise err
        raise ResponseParseFailed(
            'http status {}'.format(status), cause=body[:200])

    if data is None:
        raise ResponseParseFailed('invalid json', cause=body[:200])
    return data

def parse_response(status: int, body: str,
                   headers: Optional[Mapping[str, str]]=None) -> Response:
    data = parse_json(status, body)
    return Response(data, headers)

def log_response(resp: Response, logger: logging.Logger,
                 level: int=logging.DEBUG) -> None:
    if not logger.isEnabledFor(level):
        return
    logger.log(level, 'etcd response: action=%s etcd_index=%s '
               'raft_index=%s raft_term=%s',
               resp.action.value, resp.etcd_index,
               resp.raft_index, resp.raft_term)
    if resp.prev_node is not None:
        logger.log(level, 'previous node:')
        _log_node(resp.prev_node, logger, level, 1)
    _log_node(resp.node, logger, level, 1)

def _log_node(node: Node, logger: logging.Logger,
              level: int, depth: int) -> None:
    indent = '  ' * depth
    if node.dir:
        logger.log(level, '%s%s/ created=%s modified=%s ttl=%s',
                   indent, node.key, node.created_index,
                   node.modified_index, node.ttl)
        for c in node.children:
            _log_node(c, logger, level, depth + 1)
    else:
        logger.log(level, '%s%s = %r created=%s modified=%s ttl=%s',
                   indent, node.key, node.value, node.created_index,
                   node.modified_index, node.ttl)
