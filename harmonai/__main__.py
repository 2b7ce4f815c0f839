"""
Command line front end for the discussion client.

How to run:
    poetry run python -m harmonai health
    poetry run python -m harmonai record --name "Design review"
    poetry run python -m harmonai record --wake-word
    poetry run python -m harmonai transcript <session-id>
    poetry run python -m harmonai summary <session-id>
    poetry run python -m harmonai sessions
"""

import argparse
import sys
import threading

from requests.exceptions import RequestException
from socketio.exceptions import ConnectionError as SocketConnectionError

from .app import DiscussionClient
from .audio.utils import format_timestamp
from .config import configure_logging
from .session import SessionState


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="harmonai", description="Live discussion transcription client")
    parser.add_argument("--server", help="Backend URL (overrides SERVER_URL)")
    parser.add_argument("--log-level", help="Log level (overrides LOG_LEVEL)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("health", help="Check that the backend is reachable")

    record = subparsers.add_parser("record", help="Record a discussion until Ctrl-C")
    record.add_argument("--name", help="Session name")
    record.add_argument("--user", default="anonymous", help="User id")
    record.add_argument("--mode", choices=["stream", "chunked"], help="Audio forwarding mode (overrides AUDIO_MODE)")
    record.add_argument("--wake-word", action="store_true", help="Wait for the wake word before recording")
    record.add_argument("--no-tone", action="store_true", help="Do not play a tone on sentiment alerts")

    transcript = subparsers.add_parser("transcript", help="Print a session transcript")
    transcript.add_argument("session_id")

    summary = subparsers.add_parser("summary", help="Summarize a session")
    summary.add_argument("session_id")

    sessions = subparsers.add_parser("sessions", help="List archived sessions")
    sessions.add_argument("--state", help="Only list sessions in this state")
    sessions.add_argument("--limit", type=int, default=20)

    return parser


def cmd_health(client: DiscussionClient) -> int:
    ok, message = client.channel.test_connection(client.api)
    if ok:
        print(f"✓ Server reachable at {client.api.base_url}")
        if message:
            print(f"⚠ {message}")
        return 0
    print(f"❌ {message}")
    return 1


def cmd_record(client: DiscussionClient, args) -> int:
    finished = threading.Event()
    start = {}

    def show_entry(entry):
        offset = entry.timestamp - start.setdefault("t", entry.timestamp)
        print(f"[{format_timestamp(offset)}] {entry.text}")

    def show_suggestion(record):
        print(f"⚠ Sentiment alert ({record.alert.severity}). Suggestion: {record.suggestion}")

    def watch_state(old, new):
        if new == SessionState.ENDED:
            finished.set()

    client.sessions.on_transcript(show_entry)
    client.sessions.on_state_change(watch_state)
    client.alerts.on_suggestion(show_suggestion)
    client.user_id = args.user
    client.session_name = args.name

    try:
        client.connect()
    except SocketConnectionError as e:
        print(f"❌ Could not connect: {e}")
        return 1

    try:
        if args.wake_word:
            client.wake_word.activate()
            print("Listening for the wake word... (Ctrl-C to quit)")
        else:
            client.sessions.start_recording(user_id=args.user, session_name=args.name)
            print(f"Recording session {client.sessions.session_id}... (Ctrl-C to stop)")

        while not finished.wait(0.5):
            pass
    except KeyboardInterrupt:
        print("\nStopping...")
    except (RuntimeError, RequestException, ValueError) as e:
        print(f"❌ {e}")
        return 1
    finally:
        if args.wake_word:
            client.wake_word.deactivate()
        if client.sessions.state in (SessionState.CREATED, SessionState.ACTIVE):
            client.sessions.end_session()

    session_id = client.sessions.session_id
    if session_id:
        print(f"\nSession {session_id} ended with {len(client.sessions.transcript)} transcript entries.")
        print(client.summarize(session_id))
    return 0


def cmd_transcript(client: DiscussionClient, session_id: str) -> int:
    entries = client.fetch_transcript(session_id)
    if not entries:
        print("No transcription data found")
        return 1
    for entry in entries:
        print(f"[{entry.formatted_time}] {entry.text}")
    return 0


def cmd_sessions(client: DiscussionClient, state: str, limit: int) -> int:
    sessions = client.archive.list_sessions(state_filter=state, limit=limit)
    if not sessions:
        print("No archived sessions")
        return 0
    for metadata in sessions:
        print(f"{metadata['id']}  {metadata.get('state', '?'):8}  {metadata.get('created_at') or '-'}  {metadata.get('name') or ''}")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    client = DiscussionClient(
        server_url=args.server,
        mode=getattr(args, "mode", None),
        play_tone=not getattr(args, "no_tone", False),
    )

    try:
        if args.command == "health":
            return cmd_health(client)
        if args.command == "record":
            return cmd_record(client, args)
        if args.command == "transcript":
            return cmd_transcript(client, args.session_id)
        if args.command == "summary":
            print(client.summarize(args.session_id))
            return 0
        if args.command == "sessions":
            return cmd_sessions(client, args.state, args.limit)
    except ValueError as e:
        print(f"❌ {e}")
        return 1
    finally:
        client.close()
    return 2


if __name__ == "__main__":
    sys.exit(main())
