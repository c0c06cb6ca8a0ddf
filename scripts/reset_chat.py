#!/usr/bin/env python3
"""Reset a chat's stored state, optionally deleting its messages.

Usage: python scripts/reset_chat.py --id CHAT_ID [--clear-messages]
"""

import argparse
import os
import sys
import time

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from livecs.config import load_settings
from livecs.convo.state import ChatState
from livecs.storage.chat_db import ChatDB


def main():
    parser = argparse.ArgumentParser(description="Reset chat state")
    parser.add_argument("--id", required=True, help="Chat ID")
    parser.add_argument("--clear-messages", action="store_true", help="Also delete stored messages")
    args = parser.parse_args()

    settings = load_settings()
    db = ChatDB(os.path.join(str(settings.data_dir), "storage", "chats.json"))
    removed = db.reset_chat(args.id, ChatState(args.id, started=time.time()).to_dict(),
                            clear_messages=args.clear_messages)
    if args.clear_messages:
        print(f"Deleted {removed} messages for chat {args.id}")
    print(f"✅ Reset state for chat {args.id}")


if __name__ == "__main__":
    main()
