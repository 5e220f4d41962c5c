from typing import Dict, Any, List, Tuple, Iterable, Optional
from aiocetcd.exceptions import ResponseParseFailed

class ClusterAddresses:
    '''
    The known member addresses of an etcd cluster and the one
    currently picked for requests.

    The address tuple is never mutated in place, replace() installs
    a new one, so a caller holding a snapshot keeps a consistent list.
    '''
    _addresses: Tuple[str, ...]
    picked: int = 0

    def __init__(self, addresses: Iterable[str]) -> None:
        self._addresses = ()
        self.replace(addresses)

    @property
    def addresses(self) -> Tuple[str, ...]:
        return self._addresses

    @property
    def current(self) -> str:
        addresses = self._addresses
        return addresses[self.picked % len(addresses)]

    def advance(self) -> str:
        self.picked = (self.picked + 1) % len(self._addresses)
        return self.current

    def pick(self, address: str) -> None:
        self.picked = self._addresses.index(address)

    def replace(self, addresses: Iterable[str]) -> None:
        new_addresses = tuple(normalize_address(a) for a in addresses)
        if not new_addresses:
            raise ValueError('empty cluster addresses')
        self._addresses = new_addresses
        self.picked = 0

    def __len__(self) -> int:
        return len(self._addresses)

    def __iter__(self):
        return iter(self._addresses)

    def __repr__(self) -> str:
        return '<ClusterAddresses {!r} picked={}>'.format(
            self._addresses, self.picked)

class Member:
    id: str
    name: str
    peer_urls: List[str]
    client_urls: List[str]

    def __init__(self, data: Dict[str, Any]) -> None:
        if not isinstance(data, dict):
            raise ResponseParseFailed('member is not an object')
        self.id = str(data.get('id', ''))
        self.name = str(data.get('name', ''))
        self.peer_urls = list(data.get('peerURLs') or [])
        self.client_urls = list(data.get('clientURLs') or [])

    def as_json(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'peerURLs': self.peer_urls,
            'clientURLs': self.client_urls,
        }

    def __repr__(self) -> str:
        return '<Member {} {!r} {!r}>'.format(
            self.id, self.name, self.client_urls)

def parse_members(data: Any) -> List[Member]:
    if not isinstance(data, dict) or not isinstance(data.get('members'), list):
        raise ResponseParseFailed('invalid member list')
    return [Member(m) for m in data['members']]

def member_addresses(members: Iterable[Member]) -> List[str]:
    addresses: List[str] = []
    for m in members:
        for url in m.client_urls:
            url = normalize_address(url)
            if url not in addresses:
                addresses.append(url)
    return addresses

def normalize_address(address: str, protocol: Optional[str]=None) -> str:
    address = address.strip().rstrip('/')
    assert address, 'empty address'
    if '://' not in address:
        address = '{}://{}'.format(protocol or 'http', address)
    return address
