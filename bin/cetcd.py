#!/usr/bin/env python3
from typing import Optional, List
import signal
from argparse import ArgumentParser
import asyncio
from aiocetcd.log import config_log
from aiocetcd.handler import BaseHandler
from aiocetcd.sentry import setup_sentry
from aiocetcd.utils import import_module

config_log()

sub_modules = [
    ('key', 'aiocetcd.tools.keyop'),
    ('watch', 'aiocetcd.tools.watchkey'),
    ('cluster', 'aiocetcd.tools.clusterop'),
    ]

def main() -> None:
    top_parser = ArgumentParser(
        prog='cetcd.py',
        description='etcd v2 cluster client')

    sub_parsers = top_parser.add_subparsers(
        help='sub-command help')

    for sub_cmd, mod_name in sub_modules:
        mod = import_module(mod_name)

        assert issubclass(mod.Handler, BaseHandler)

        handler = mod.Handler()
        help_msg = getattr(handler, 'help', '')
        parser = sub_parsers.add_parser(sub_cmd, help=help_msg)
        handler.add_arguments(parser)
        parser.set_defaults(handler=handler)

    run(top_parser)

def run(top_parser: ArgumentParser, input_args: Optional[List[str]]=None) -> None:
    args = top_parser.parse_args(input_args)
    setup_sentry()

    handler = getattr(args, 'handler', None)
    if handler is None:
        top_parser.print_help()
        return

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    loop.add_signal_handler(
        signal.SIGTERM,
        on_term_sig)

    try:
        loop.run_until_complete(handler.run(args))
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(handler.shutdown())
        loop.close()

def on_term_sig() -> None:
    raise KeyboardInterrupt()

if __name__ == '__main__':
    main()
