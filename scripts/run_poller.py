#!/usr/bin/env python3
"""Run the LiveChat polling bot until Ctrl+C."""

import asyncio
import os
import signal
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from livecs.config import load_settings
from livecs.convo.engine import ConversationEngine
from livecs.livechat.client import LiveChatClient
from livecs.livechat.poller import ChatPoller


async def main():
    settings = load_settings()
    if not settings.livechat_access_token:
        print("⚠️  LIVECHAT_ACCESS_TOKEN not set. LiveChat calls will fail.")

    debug = "--debug" in sys.argv
    client = LiveChatClient(
        access_token=settings.livechat_access_token,
        base_url=settings.livechat_base_url,
        timeout=settings.livechat_timeout,
        debug=debug,
    )
    engine = ConversationEngine(settings, transport=client, debug=debug)
    poller = ChatPoller(engine, client, interval=settings.poll_interval,
                        min_response_gap=settings.min_response_gap, debug=debug)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, poller.stop)
        except NotImplementedError:
            pass

    await poller.run()


if __name__ == "__main__":
    asyncio.run(main())
