"""
Command-line entry point for the Quotation Engine.
"""

import argparse
import asyncio

from quotation_engine.config.settings import settings


def create_cli_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="Body Builder Quotation Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  quotation-engine serve               Run the API server
  quotation-engine serve --port 9000   Run on another port
  quotation-engine init-db             Create database tables
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    serve_parser = subparsers.add_parser('serve', help='Run the API server')
    serve_parser.add_argument('--host', default=settings.host, help='Bind address')
    serve_parser.add_argument('--port', type=int, default=settings.port, help='Bind port')
    serve_parser.add_argument(
        '--reload',
        action='store_true',
        help='Reload on code changes (development only)'
    )

    subparsers.add_parser('init-db', help='Create database tables')

    return parser


async def _init_db() -> None:
    from quotation_engine.database.base import close_db, init_db
    from quotation_engine.utils.logging import get_logger, setup_logging

    setup_logging()
    await init_db()
    await close_db()
    get_logger(__name__).info("Database initialized", host=settings.database.host)


def main():
    """Main entry point for CLI."""
    parser = create_cli_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    if args.command == 'serve':
        import uvicorn

        uvicorn.run(
            "quotation_engine.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=1 if args.reload else settings.workers,
        )

    elif args.command == 'init-db':
        asyncio.run(_init_db())


if __name__ == "__main__":
    main()
