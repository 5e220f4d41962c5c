import pytest
import pytest_asyncio
import os
from aiohttp.test_utils import TestServer, unused_port

from fake_etcd import FakeEtcd, ScriptedEtcd, DroppingServer

TEST_DIR = os.path.dirname(os.path.abspath(__file__))

@pytest.hookimpl
def pytest_collection_modifyitems(session, config, items):
    os.environ['CETCD_TESTING'] = 'yes'
    os.environ['CETCD_PATH'] = os.path.join(TEST_DIR, 'cetcd')

def server_address(server):
    return 'http://{}:{}'.format(server.host, server.port)

def unreachable_address():
    return 'http://127.0.0.1:{}'.format(unused_port())

@pytest_asyncio.fixture
async def etcd():
    fake = FakeEtcd()
    server = TestServer(fake.make_app())
    await server.start_server()
    fake.address = server_address(server)
    fake.members = [{
        'id': '8e9e05c52164694d',
        'name': fake.name,
        'peerURLs': ['http://127.0.0.1:2380'],
        'clientURLs': [fake.address],
    }]
    yield fake
    await server.close()

@pytest_asyncio.fixture
async def scripted():
    servers = []
    async def start(script):
        fake = ScriptedEtcd(script)
        server = TestServer(fake.make_app())
        await server.start_server()
        fake.address = server_address(server)
        servers.append(server)
        return fake
    yield start
    for server in servers:
        await server.close()

@pytest_asyncio.fixture
async def dropping():
    servers = []
    async def start():
        server = DroppingServer()
        await server.start()
        servers.append(server)
        return server
    yield start
    for server in servers:
        await server.close()
