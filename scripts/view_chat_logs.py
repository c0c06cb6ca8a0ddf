#!/usr/bin/env python3

import os
import json
from datetime import datetime, timezone
from typing import Optional

def get_log_path(date: Optional[str] = None, prefix: str = "cs") -> str:
    if date is None:
        date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    
    base_path = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(base_path, "data", "storage", "logs", f"{prefix}-{date}.jsonl")

def format_timestamp(ts: str) -> str:
    try:
        dt = datetime.fromisoformat(ts.replace('Z', '+00:00'))
        return dt.strftime("%H:%M:%S")
    except ValueError:
        return ts

def print_log_entry(log: dict, verbose: bool = False, prev_log: dict = None):
    ts = format_timestamp(log.get("ts", ""))
    direction = log.get("dir")
    chat_id = (log.get("chat_id") or "")[-6:]

    if prev_log and prev_log.get("dir") == "out" and direction == "in":
        print()

    if direction == "in":
        print(f"[{ts}] 👤 Chat {chat_id}: {log.get('text', '')}")
        if verbose and log.get("message_id"):
            print(f"         Message: {log['message_id']}")

    elif direction == "out":
        text = log.get("text", "")
        if len(text) > 100 and not verbose:
            text = text[:97] + "..."
        mark = "" if log.get("delivered", True) else " (not delivered)"
        print(f"[{ts}] 🤖 Bot{mark}:  {text}")
        if verbose:
            print(f"         Stage: {log.get('stage')}")

    elif direction == "stage" and verbose:
        print(f"[{ts}]    ↳ stage {log.get('short')} ({log.get('stage')})")

    elif direction == "guard":
        print(f"[{ts}] 🚫 Guard {log.get('rule')}: {log.get('action')}")

    elif direction == "ping":
        ok = "✓" if log.get("ok") else "✗"
        print(f"[{ts}] 🔔 Ping {log.get('type')} user={log.get('user_id')} amount={log.get('amount')} [{ok}]")

    elif direction == "llm" and verbose:
        print(f"[{ts}] 🧠 LLM {log.get('model')}: {log.get('response', '')[:80]}")

def view_logs(date: Optional[str] = None, chat_id: Optional[str] = None,
              direction: Optional[str] = None, verbose: bool = False,
              stage: Optional[str] = None):
    
    log_path = get_log_path(date)
    
    if not os.path.exists(log_path):
        print(f"❌ Log file not found: {log_path}")
        return
    
    print(f"📋 Reading: {log_path}")
    print("=" * 80)
    
    count = 0
    prev_log = None
    with open(log_path, 'r', encoding='utf-8') as f:
        for line in f:
            try:
                log = json.loads(line)
            except json.JSONDecodeError:
                continue

            if chat_id and not (log.get("chat_id") or "").endswith(chat_id):
                continue
            if direction and log.get("dir") != direction:
                continue
            if stage and log.get("stage") != stage:
                continue

            print_log_entry(log, verbose, prev_log)
            prev_log = log
            count += 1
    
    print("=" * 80)
    print(f"Total entries: {count}")

def show_stats(date: Optional[str] = None):
    log_path = get_log_path(date)
    
    if not os.path.exists(log_path):
        print(f"❌ Log file not found: {log_path}")
        return
    
    stats = {
        "in": 0,
        "out": 0,
        "undelivered": 0,
        "chats": set(),
        "stages": {},
        "guards": {},
        "pings": {},
    }
    
    with open(log_path, 'r', encoding='utf-8') as f:
        for line in f:
            try:
                log = json.loads(line)
            except json.JSONDecodeError:
                continue
            direction = log.get("dir")

            if direction == "in":
                stats["in"] += 1
                stats["chats"].add(log.get("chat_id"))
            elif direction == "out":
                stats["out"] += 1
                if not log.get("delivered", True):
                    stats["undelivered"] += 1
            elif direction == "stage":
                name = log.get("stage", "unknown")
                stats["stages"][name] = stats["stages"].get(name, 0) + 1
            elif direction == "guard":
                rule = log.get("rule", "unknown")
                stats["guards"][rule] = stats["guards"].get(rule, 0) + 1
            elif direction == "ping":
                kind = log.get("type", "unknown")
                stats["pings"][kind] = stats["pings"].get(kind, 0) + 1
    
    print(f"📊 Statistics for {date or 'today'}")
    print("=" * 80)
    print(f"Total Messages:")
    print(f"  Incoming: {stats['in']}")
    print(f"  Outgoing: {stats['out']} ({stats['undelivered']} not delivered)")
    print(f"  Unique Chats: {len(stats['chats'])}")
    print()
    print("Stage Distribution:")
    for name, count in sorted(stats["stages"].items(), key=lambda x: -x[1]):
        print(f"  {name}: {count}")
    print()
    print("Guard Hits:")
    for rule, count in sorted(stats["guards"].items(), key=lambda x: -x[1]):
        print(f"  {rule}: {count}")
    print()
    print("Support Pings:")
    for kind, count in sorted(stats["pings"].items(), key=lambda x: -x[1]):
        print(f"  {kind}: {count}")

if __name__ == "__main__":
    import argparse
    
    parser = argparse.ArgumentParser(description="Chat Log Viewer")
    parser.add_argument("--date", help="Date (YYYY-MM-DD), default: today")
    parser.add_argument("--chat", help="Filter by chat ID suffix")
    parser.add_argument("--direction", choices=["in", "out", "stage", "guard", "ping", "llm"], help="Filter by event type")
    parser.add_argument("--stage", help="Filter by resolver stage")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show stage and LLM events")
    parser.add_argument("--stats", action="store_true", help="Show statistics instead of logs")
    
    args = parser.parse_args()
    
    if args.stats:
        show_stats(args.date)
    else:
        view_logs(
            date=args.date,
            chat_id=args.chat,
            direction=args.direction,
            verbose=args.verbose,
            stage=args.stage,
        )
