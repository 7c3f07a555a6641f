import argparse
import json

from dotenv import load_dotenv

load_dotenv()

from src.careops.config import settings
from src.careops.utils.logger import setup_logging


def _print(rows):
    print(json.dumps(rows, indent=2, ensure_ascii=False, default=str))


def main():
    parser = argparse.ArgumentParser(description="Session and activity tracking for the hospital operations dashboard")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")

    sub.add_parser("sessions", help="list active sessions")
    sub.add_parser("history", help="list login history")
    sub.add_parser("activity", help="list recent activity")
    sub.add_parser("clean-activity", help="drop invalid activity entries")

    args = parser.parse_args()
    setup_logging(settings.LOG_LEVEL)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("src.careops.main:app", host=args.host, port=args.port, reload=args.reload)
        return

    from src.careops.utils.context import build_context

    ctx = build_context(settings)
    if args.command == "sessions":
        _print([s.model_dump(mode="json") for s in ctx.sessions.get_active_sessions()])
    elif args.command == "history":
        _print([h.model_dump(mode="json") for h in ctx.sessions.get_login_history()])
    elif args.command == "activity":
        _print([a.model_dump(mode="json") for a in ctx.activity_log.query_with_time_ago()])
    elif args.command == "clean-activity":
        before, after = ctx.activity_log.clean()
        print(f"Cleaned activities: {before} -> {after}")


if __name__ == '__main__':
    main()
