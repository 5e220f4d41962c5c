from typing import Any
from argparse import Namespace, ArgumentParser

from aiocetcd.client import Client
from aiocetcd.exceptions import EtcdError
from aiocetcd.handler import BaseHandler
from aiocetcd.utils import json_pp

async def key_get(c: Client, args: Namespace) -> Any:
    return await c.get(args.key)

async def key_ls(c: Client, args: Namespace) -> Any:
    return await c.directory(args.key, sort=args.sort,
                             recursive=args.recursive)

async def key_set(c: Client, args: Namespace) -> Any:
    if args.prev is not None:
        return await c.compare_and_swap(args.key, args.value,
                                        args.prev, ttl=args.ttl)
    return await c.set(args.key, args.value, ttl=args.ttl)

async def key_mk(c: Client, args: Namespace) -> Any:
    if args.in_order:
        return await c.create_in_order(args.key, args.value, ttl=args.ttl)
    return await c.create(args.key, args.value, ttl=args.ttl)

async def key_mkdir(c: Client, args: Namespace) -> Any:
    return await c.make_directory(args.key, ttl=args.ttl)

async def key_update(c: Client, args: Namespace) -> Any:
    return await c.update(args.key, args.value, ttl=args.ttl,
                          refresh=args.value is None)

async def key_rm(c: Client, args: Namespace) -> Any:
    if args.prev is not None:
        return await c.compare_and_delete(args.key, args.prev)
    return await c.delete(args.key)

async def key_rmdir(c: Client, args: Namespace) -> Any:
    return await c.dir_remove(args.key, recursive=args.recursive)

class Handler(BaseHandler):
    help = 'read and write etcd keys'

    def add_arguments(self, parser: ArgumentParser) -> None:
        subp = parser.add_subparsers()

        p = subp.add_parser('get', help='get the value of a key')
        p.add_argument('key', type=str)
        p.set_defaults(func=key_get)

        p = subp.add_parser('ls', help='list a directory')
        p.add_argument('key', type=str, nargs='?', default='/')
        p.add_argument('--sort', action='store_true')
        p.add_argument('--recursive', action='store_true')
        p.set_defaults(func=key_ls)

        p = subp.add_parser('set', help='set the value of a key')
        p.add_argument('key', type=str)
        p.add_argument('value', type=str)
        p.add_argument('--ttl', type=int, default=None)
        p.add_argument('--prev', type=str, default=None,
                       help='swap only if the current value matches')
        p.set_defaults(func=key_set)

        p = subp.add_parser('mk', help='create a key that does not exist')
        p.add_argument('key', type=str)
        p.add_argument('value', type=str)
        p.add_argument('--ttl', type=int, default=None)
        p.add_argument('--in-order', action='store_true',
                       help='create an in order key under the directory')
        p.set_defaults(func=key_mk)

        p = subp.add_parser('mkdir', help='make a directory')
        p.add_argument('key', type=str)
        p.add_argument('--ttl', type=int, default=None)
        p.set_defaults(func=key_mkdir)

        p = subp.add_parser('update', help='update an existing key, '
                            'refresh its ttl when no value is given')
        p.add_argument('key', type=str)
        p.add_argument('value', type=str, nargs='?', default=None)
        p.add_argument('--ttl', type=int, default=None)
        p.set_defaults(func=key_update)

        p = subp.add_parser('rm', help='remove a key')
        p.add_argument('key', type=str)
        p.add_argument('--prev', type=str, default=None,
                       help='remove only if the current value matches')
        p.set_defaults(func=key_rm)

        p = subp.add_parser('rmdir', help='remove a directory')
        p.add_argument('key', type=str)
        p.add_argument('--recursive', action='store_true')
        p.set_defaults(func=key_rmdir)

    async def run(self, args: Namespace) -> None:
        func = getattr(args, 'func', None)
        if func is None:
            print('cetcd.py key -h')
            return
        try:
            resp = await func(self.get_client(), args)
        except EtcdError as e:
            print(json_pp({
                'errorCode': e.code,
                'message': e.message,
                'cause': e.cause,
                'index': e.index,
            }))
            raise SystemExit(1)
        print(json_pp(resp.as_json()))
