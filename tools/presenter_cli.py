#!/usr/bin/env python3
"""
Live Presenter - Interactive CLI

Type lines as if they were spoken; each one is sent as a completed utterance
and the resulting actions and history are printed as they arrive.

Usage:
    python tools/presenter_cli.py [--url URL] [--session SESSION_ID]

Commands:
    j (toggle JSON), q (quit), /pause, /resume, /export, /reset, /stop,
    /goto N (navigate to entry N)
"""

import asyncio
import websockets
import json
import ssl
import uuid
import sys
from datetime import datetime

# ANSI color codes
COLORS = {
    'reset': '\033[0m',
    'red': '\033[91m',
    'green': '\033[92m',
    'yellow': '\033[93m',
    'blue': '\033[94m',
    'magenta': '\033[95m',
    'cyan': '\033[96m',
    'gray': '\033[90m',
    'bold': '\033[1m',
}


def color(text, color_name):
    return f"{COLORS.get(color_name, '')}{text}{COLORS['reset']}"


def format_timestamp():
    return datetime.now().strftime("%H:%M:%S")


def print_entry(index, entry, is_current):
    subject = entry.get('subject', {})
    marker = color('*', 'green') if is_current else ' '
    kind = 'DIAGRAM' if subject.get('type') == 'diagram' else 'SLIDE'
    translation = entry.get('subject_translation')
    suffix = color(f" ({translation})", 'gray') if translation else ''
    print(f"  {marker} {color(f'[{index}]', 'cyan')} {kind}: {subject.get('title', '')}{suffix}")

    if subject.get('type') == 'diagram':
        graph = subject.get('graph', {})
        for node in graph.get('nodes', []):
            print(f"        o {node.get('label')}")
        for edge in graph.get('edges', []):
            print(f"        {edge.get('from')} -> {edge.get('to')}")
    for bullet in entry.get('bullet_points', []):
        print(f"        - {bullet.get('text')}")


def print_message(msg_type, payload, raw_json=None, show_raw=False):
    """Pretty-print a WebSocket message."""
    ts = color(f"[{format_timestamp()}]", 'gray')

    if msg_type == 'action_detected':
        action = payload.get('action', {})
        name = action.get('action', 'unknown')
        details = {k: v for k, v in action.items() if k != 'action'}
        confidence = color(f"(confidence {payload.get('confidence', 0):.1f})", 'gray')
        print(f"{ts} {color('ACTION:', 'yellow')} {name} {confidence} {json.dumps(details)[:200]}")

    elif msg_type == 'history_update':
        entries = payload.get('entries', [])
        current = payload.get('current_index', -1)
        print(f"{ts} {color('HISTORY:', 'blue')} {len(entries)} entries, state={payload.get('state')}, "
              f"diagram_mode={payload.get('diagram_mode')}")
        for i, entry in enumerate(entries):
            print_entry(i, entry, i == current)

    elif msg_type == 'status_update':
        status = payload.get('status', '')
        text = payload.get('text', '')
        print(f"{ts} {color('STATUS:', 'magenta')} [{status}] {text}")

    elif msg_type == 'markdown_export':
        print(f"{ts} {color('EXPORT:', 'green')} {payload.get('entry_count', 0)} entries")
        print(payload.get('markdown', ''))

    elif msg_type == 'pong':
        print(f"{ts} {color('PONG', 'gray')}")

    else:
        print(f"{ts} {color(f'{msg_type.upper()}:', 'gray')} {str(payload)[:200]}")

    if show_raw and raw_json:
        print(f"    {color('RAW:', 'gray')} {json.dumps(raw_json, indent=2)[:500]}")


async def receive_messages(ws, show_raw_ref):
    """Background task to receive and display messages."""
    try:
        async for message in ws:
            try:
                data = json.loads(message)
                msg_type = data.get('type', 'unknown')
                payload = data.get('payload', {})
                print_message(msg_type, payload, data, show_raw_ref[0])
                print(f"{color('> ', 'cyan')}", end='', flush=True)  # Re-print prompt
            except json.JSONDecodeError:
                print(color(f"[RAW] {message[:200]}", 'red'))
    except websockets.ConnectionClosed:
        print(color("\nConnection closed", 'yellow'))
    except asyncio.CancelledError:
        pass
    except Exception as e:
        print(color(f"\nReceive error: {e}", 'red'))


def build_command(line):
    """Turn a '/command' line into a protocol message, or None if unknown."""
    parts = line[1:].split()
    if not parts:
        return None
    name = parts[0].lower()
    if name in ('pause', 'resume', 'export', 'reset', 'stop', 'ping'):
        return {"type": name}
    if name == 'goto' and len(parts) == 2 and parts[1].isdigit():
        return {"type": "navigate", "data": {"index": int(parts[1])}}
    return None


async def send_utterance(ws, text):
    """Send one completed utterance."""
    msg = {
        "type": "utterance",
        "data": {"id": f"cli-{uuid.uuid4().hex[:8]}", "text": text}
    }
    await ws.send(json.dumps(msg))
    ts = color(f"[{format_timestamp()}]", 'gray')
    print(f"{ts} {color('>>> YOU:', 'cyan')} {text}")


async def main(url, session_id=None):
    """Main CLI loop."""
    if not session_id:
        session_id = f"cli-{uuid.uuid4().hex[:8]}"

    full_url = f"{url}/ws?session_id={session_id}"

    print(color("=" * 60, 'bold'))
    print(color("Live Presenter - CLI", 'bold'))
    print(color("=" * 60, 'bold'))
    print(f"Session: {color(session_id, 'cyan')}")
    print(f"URL: {color(full_url, 'gray')}")
    print(color("-" * 60, 'gray'))
    print("Commands:")
    print(f"  {color('j', 'yellow')} - Toggle raw JSON display")
    print(f"  {color('q', 'yellow')} - Quit")
    print(f"  {color('/pause /resume /export /reset /stop /goto N', 'yellow')} - Control messages")
    print(color("-" * 60, 'gray'))

    ssl_context = None
    if full_url.startswith("wss://"):
        ssl_context = ssl.create_default_context()

    # Use a mutable reference for show_raw so the receive task can see updates
    show_raw_ref = [False]

    try:
        async with websockets.connect(
            full_url,
            ssl=ssl_context,
            ping_interval=30,
            ping_timeout=10
        ) as ws:
            print(color("Connected!\n", 'green'))

            receive_task = asyncio.create_task(receive_messages(ws, show_raw_ref))

            # Input loop
            while True:
                try:
                    print(f"{color('> ', 'cyan')}", end='', flush=True)
                    loop = asyncio.get_running_loop()
                    line = await loop.run_in_executor(None, sys.stdin.readline)
                    line = line.strip()

                    if not line:
                        continue

                    if line.lower() == 'q':
                        print(color("Goodbye!", 'yellow'))
                        break
                    elif line.lower() == 'j':
                        show_raw_ref[0] = not show_raw_ref[0]
                        print(color(f"Raw JSON: {'ON' if show_raw_ref[0] else 'OFF'}", 'yellow'))
                    elif line.startswith('/'):
                        command = build_command(line)
                        if command is None:
                            print(color(f"Unknown command: {line}", 'red'))
                        else:
                            await ws.send(json.dumps(command))
                    else:
                        await send_utterance(ws, line)

                except KeyboardInterrupt:
                    print(color("\nInterrupted", 'yellow'))
                    break

            receive_task.cancel()
            try:
                await receive_task
            except asyncio.CancelledError:
                pass

    except Exception as e:
        print(color(f"Connection error: {e}", 'red'))


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="Live Presenter CLI")
    parser.add_argument("--url", default="ws://localhost:8000", help="WebSocket base URL")
    parser.add_argument("--session", default=None, help="Session ID")
    args = parser.parse_args()

    asyncio.run(main(args.url, args.session))
