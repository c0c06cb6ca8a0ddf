#!/usr/bin/env python3

import argparse
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from livecs.config import load_settings
from livecs.storage.chat_db import CHAT_RETENTION_HOURS, ChatDB


def main():
    parser = argparse.ArgumentParser(description="Delete chats idle longer than the retention window")
    parser.add_argument("--hours", type=float, default=CHAT_RETENTION_HOURS, help="Max idle age in hours")
    args = parser.parse_args()

    settings = load_settings()
    db = ChatDB(os.path.join(str(settings.data_dir), "storage", "chats.json"))
    print("Starting chat cleanup...")
    try:
        deleted = db.cleanup_old_chats(max_age_hours=args.hours)
    except Exception as e:
        print(f"❌ Error during cleanup: {e}")
        sys.exit(1)
    print(f"Successfully cleaned up {deleted} old chats.")


if __name__ == "__main__":
    main()
