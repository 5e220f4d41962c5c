from argparse import Namespace, ArgumentParser

from aiocetcd.client import Client
from aiocetcd.handler import BaseHandler
from aiocetcd.utils import json_pp

async def cluster_members(c: Client, args: Namespace) -> None:
    members = await c.members()
    print(json_pp([m.as_json() for m in members]))

async def cluster_sync(c: Client, args: Namespace) -> None:
    if await c.sync_cluster():
        print(json_pp(list(c.addresses)))
    else:
        print('sync failed: {}'.format(c.last_error))
        raise SystemExit(1)

async def cluster_stats(c: Client, args: Namespace) -> None:
    if args.kind == 'leader':
        stats = await c.stats_leader()
    elif args.kind == 'store':
        stats = await c.stats_store()
    else:
        stats = await c.stats_self()
    print(json_pp(stats))

class Handler(BaseHandler):
    help = 'etcd cluster info'

    def add_arguments(self, parser: ArgumentParser) -> None:
        subp = parser.add_subparsers()
        p = subp.add_parser('members', help='list cluster members')
        p.set_defaults(func=cluster_members)

        p = subp.add_parser('sync', help='refresh cluster addresses')
        p.set_defaults(func=cluster_sync)

        p = subp.add_parser('stats', help='print etcd stats')
        p.add_argument('kind', choices=['leader', 'self', 'store'],
                       nargs='?', default='self')
        p.set_defaults(func=cluster_stats)

    async def run(self, args: Namespace) -> None:
        func = getattr(args, 'func', None)
        if func is None:
            print('cetcd.py cluster -h')
        else:
            await func(self.get_client(), args)
