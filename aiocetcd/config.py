from typing import Dict, Any, List, Optional
import re
import json
import time
from aiocetcd.utils import get_cetcd_path
from aiocetcd.cluster import normalize_address

DEFAULT_ADDRESSES = ['127.0.0.1:2379']

class Config:
    loaded: bool = False
    path: Optional[str] = None
    addresses: List[str]
    protocol: str = 'http'
    keys_space: str = 'v2/keys'
    stat_space: str = 'v2/stats'
    member_space: str = 'v2/members'
    verbose: bool = False
    ttl: int = 0
    connect_timeout: float = 1.0
    read_timeout: float = 5.0
    write_timeout: float = 5.0
    watch_timeout: Optional[float] = None
    user: Optional[str] = None
    password: Optional[str] = None
    tls_ca: Optional[str] = None
    tls_cert: Optional[str] = None
    tls_key: Optional[str] = None
    loadtime: int

    def __init__(self) -> None:
        self.addresses = list(DEFAULT_ADDRESSES)

    def load(self, path: Optional[str]=None) -> None:
        path = path or get_cetcd_path('client.json')
        if path:
            with open(path, 'r', encoding='utf-8') as f:
                kw = json.load(f)
            self.update(kw)
            self.path = path
            self.loaded = True
            self.loadtime = int(time.time())

    def update(self, kw: Dict[str, Any]) -> None:
        self.protocol = kw.get('protocol', self.protocol)
        addresses = kw.get('addresses', self.addresses)
        if isinstance(addresses, str):
            addresses = [addresses]
        self.addresses = [normalize_address(a, self.protocol)
                          for a in addresses]
        self.keys_space = kw.get('keys_space', self.keys_space)
        self.stat_space = kw.get('stat_space', self.stat_space)
        self.member_space = kw.get('member_space', self.member_space)
        self.verbose = bool(kw.get('verbose', self.verbose))
        self.ttl = int(kw.get('ttl', self.ttl))
        self.connect_timeout = float(
            kw.get('connect_timeout', self.connect_timeout))
        self.read_timeout = float(kw.get('read_timeout', self.read_timeout))
        self.write_timeout = float(
            kw.get('write_timeout', self.write_timeout))
        watch_timeout = kw.get('watch_timeout', self.watch_timeout)
        self.watch_timeout = (float(watch_timeout)
                              if watch_timeout else None)
        self.user = kw.get('user', self.user)
        self.password = kw.get('password', self.password)

        tls = kw.get('tls') or {}
        self.tls_ca = tls.get('ca', self.tls_ca)
        self.tls_cert = tls.get('cert', self.tls_cert)
        self.tls_key = tls.get('key', self.tls_key)

        self.validate()

    def validate(self) -> None:
        assert self.addresses, 'no etcd address'
        assert self.protocol in ('http', 'https'), self.protocol
        for space in (self.keys_space, self.stat_space, self.member_space):
            assert re.match(r'[0-9a-zA-Z\_\.\-/]+$', space), space
        assert self.ttl >= 0
        if self.password:
            assert self.user, 'password without user'

_config = Config()
def get_config() -> Config:
    if not _config.loaded:
        _config.load()
    return _config
