"""CLI: serve the API, sync one record, moderate a listing, build site data, or start scheduler."""
from __future__ import annotations

import argparse
import json
import sys


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Farm directory backend")
    sub = parser.add_subparsers(dest="command", help="Command")
    sub.add_parser("serve", help="Start the Flask API (webhook + read endpoints)")
    sync_parser = sub.add_parser("sync", help="Pull one Zoho record and upsert it")
    sync_parser.add_argument("zoho_id", help="Zoho record id (bare or zcrm_-prefixed)")
    moderate_parser = sub.add_parser("moderate", help="Set moderation flags on a listing")
    moderate_parser.add_argument("zoho_id", help="Zoho record id (bare or zcrm_-prefixed)")
    # Omitted flags stay None and are left untouched.
    for flag in ("verified", "featured", "active"):
        moderate_parser.add_argument(f"--{flag}", action=argparse.BooleanOptionalAction, default=None)
    build_cmd = sub.add_parser("build", help="Write static-site data files once and exit")
    build_cmd.add_argument("--output-dir", help="Override build.output_dir")
    sub.add_parser("schedule", help="Start scheduler for periodic builds (blocking)")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        from farmdir.webhook_server import main as serve_main
        serve_main()
        return
    if args.command == "schedule":
        from farmdir.scheduler import start_scheduler
        start_scheduler()
        return
    if args.command not in ("sync", "moderate", "build"):
        parser.print_help()
        sys.exit(1)

    from farmdir.config import get_config
    from farmdir.logging_config import setup_logging
    from farmdir.supabase_client import get_client
    cfg = get_config()
    # One-shot commands log to stderr only; builds also keep a log file.
    setup_logging(cfg, log_to_file=args.command == "build")
    client = get_client(cfg)
    if args.command == "sync":
        from farmdir.sync import sync_zoho_record
        row = sync_zoho_record(cfg, client, args.zoho_id)
        print(json.dumps({"id": row.get("external_id"), "slug": row.get("slug")}))
    elif args.command == "moderate":
        from farmdir.schema import storage_id
        from farmdir.supabase_client import set_moderation
        count = set_moderation(
            client,
            storage_id(args.zoho_id),
            verified=args.verified,
            featured=args.featured,
            active=args.active,
        )
        if count == 0:
            print(f"No listing changed for {storage_id(args.zoho_id)}", file=sys.stderr)
            sys.exit(1)
    else:
        from farmdir.build import run_build
        summary = run_build(cfg, client=client, output_dir=args.output_dir)
        print(json.dumps(summary))


if __name__ == "__main__":
    main()
