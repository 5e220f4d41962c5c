from typing import Optional
from argparse import Namespace, ArgumentParser
from aiocetcd.client import Client

class BaseHandler:
    help: str = ''
    client: Optional[Client] = None

    def add_arguments(self, parser: ArgumentParser) -> None:
        pass

    def get_client(self) -> Client:
        if self.client is None:
            self.client = Client.from_config()
        return self.client

    async def run(self, args: Namespace) -> None:
        raise NotImplementedError

    async def shutdown(self) -> None:
        if self.client is not None:
            await self.client.close()
            self.client = None
