"""
Lead Funnel Insights: Entry Point
===================================

Run:
  python main.py                    # API server (same as `serve`)
  python main.py serve [--port N]
  python main.py analyze [--range 7d] [--timeframe 30d] [--sync] ...
"""

import argparse
import os
import sys

from dotenv import load_dotenv

load_dotenv()

from insights.lib.logger import setup_logger

logger = setup_logger("lead-funnel-insights")

PORT = int(os.getenv("DASHBOARD_PORT", "8001"))


def serve(port: int = PORT) -> int:
    import uvicorn

    debug = os.getenv("DEBUG", "false").lower() == "true"
    logger.info("=" * 60)
    logger.info("  LEAD FUNNEL INSIGHTS: Marketing Analytics API")
    logger.info("=" * 60)
    logger.info(f"  Environment : {os.getenv('ENVIRONMENT', 'development')}")
    logger.info(f"  Server      : http://0.0.0.0:{port}")
    logger.info(f"  API Docs    : http://localhost:{port}/docs")
    logger.info(f"  Debug       : {debug}")
    logger.info("=" * 60)

    uvicorn.run(
        "dashboard.api.main:app",
        host="0.0.0.0",
        port=port,
        reload=debug,
        log_level=os.getenv("LOG_LEVEL", "INFO").lower(),
    )
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Lead Funnel Insights")
    sub = parser.add_subparsers(dest="command")

    serve_parser = sub.add_parser("serve", help="Run the analytics API")
    serve_parser.add_argument("--port", type=int, default=PORT)

    # Remaining arguments are handed to the analyzer's own parser
    sub.add_parser("analyze", help="Build a metrics snapshot", add_help=False)

    args, rest = parser.parse_known_args(argv)

    if args.command == "analyze":
        from insights.marketing_analyzer import main as analyze_main
        return analyze_main(rest)
    if rest:
        parser.error(f"unrecognized arguments: {' '.join(rest)}")
    return serve(getattr(args, "port", PORT))


if __name__ == "__main__":
    sys.exit(main())
