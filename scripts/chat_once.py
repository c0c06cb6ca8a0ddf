#!/usr/bin/env python3

import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from livecs.convo.engine import ConversationEngine


def main():
    msg = " ".join(sys.argv[1:]).strip()
    if not msg:
        print('Usage: python scripts/chat_once.py "pesan kamu"')
        sys.exit(1)

    chat_id = "cli_" + datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
    engine = ConversationEngine()
    reply = engine.handle_turn(chat_id, msg, f"{chat_id}_1")
    print(reply or "(no response)")


if __name__ == "__main__":
    main()
