from typing import Union
from argparse import Namespace, ArgumentParser

from aiocetcd.exceptions import EtcdError
from aiocetcd.handler import BaseHandler
from aiocetcd.response import Response
from aiocetcd.utils import json_pp

def print_event(key: str, result: Union[Response, EtcdError]) -> None:
    if isinstance(result, EtcdError):
        print('{}: error {}'.format(key, result))
    else:
        print(json_pp(result.as_json()))

class Handler(BaseHandler):
    help = 'watch the changes of keys'

    def add_arguments(self, parser: ArgumentParser) -> None:
        parser.add_argument(
            'keys',
            type=str,
            nargs='+',
            help='keys to watch')

        parser.add_argument(
            '--recursive',
            action='store_true',
            help='watch sub keys too')

        parser.add_argument(
            '--once',
            action='store_true',
            help='exit after the first change of every key')

        parser.add_argument(
            '--index',
            type=int,
            default=0,
            help='watch from this etcd index')

    async def run(self, args: Namespace) -> None:
        c = self.get_client()
        for key in args.keys:
            w = c.watcher_create(key,
                                 index=args.index,
                                 recursive=args.recursive,
                                 once=args.once,
                                 callback=print_event,
                                 user_data=key)
            c.watcher_add(w)
        await c.watcher_multi()
        for w in c.watchers:
            if w.error is not None:
                print('{}: stopped, {}'.format(w.key, w.error))
