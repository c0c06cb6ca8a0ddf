#!/usr/bin/env python3
"""Local REPL against the conversation engine (no LiveChat)."""

import os
import sys
import time

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from livecs.convo.engine import ConversationEngine


def main():
    engine = ConversationEngine(debug="--debug" in sys.argv)
    chat_id = f"cli_{int(time.time() * 1000)}"
    counter = 0

    print("Local Bot REPL (no LiveChat)")
    print("- Ketik pesan lalu Enter")
    print("- /state untuk lihat state, /reset untuk mulai ulang, /exit untuk keluar")
    print()

    while True:
        try:
            text = input("You > ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if not text:
            continue
        if text == "/exit":
            break
        if text == "/state":
            state = engine.chat_state(chat_id)
            print(f"  deposit: {state['deposit_state']}")
            print(f"  withdraw: {state['withdraw_state']}")
            print(f"  last_response_type: {state['last_response_type']}")
            continue
        if text == "/reset":
            engine.reset_chat(chat_id, clear_messages=True)
            print("  ✅ Chat direset")
            continue

        counter += 1
        try:
            reply = engine.handle_turn(chat_id, text, f"{chat_id}_{counter}", follow_up=True)
        except Exception as e:
            print(f"Error: {e}")
            continue
        print(f"Bot > {reply or '(no response)'}")

    print("Goodbye!")


if __name__ == "__main__":
    main()
