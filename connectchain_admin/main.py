#!/usr/bin/env python
# connectchain_admin/main.py - Command line entry point for the admin backend
import argparse
import sys

from sqlalchemy import func, select

from connectchain_admin.config import config
from connectchain_admin.db import db, session_scope
from connectchain_admin.logging_setup import logger, get_logger, log_exception
from connectchain_admin.models import Category, Product


def init_application(connection_string=None):
    """Initialize application components."""
    db.initialize(connection_string)

    log = logger.app_logger
    log.info("ConnectChain admin backend initialized")
    log.info(f"Using database: {config.get('DATABASE', 'engine')} at "
             f"{config.get('DATABASE', 'host')}:{config.get('DATABASE', 'port')}")
    return True


def serve(args):
    """Run the HTTP API with the Flask development server."""
    from connectchain_admin.api import create_app

    server = config.server_config
    host = args.host or server['host']
    port = args.port or server['port']

    app = create_app(args.database_url)
    logger.app_logger.info(f"Serving admin API on {host}:{port}")
    app.run(host=host, port=port, debug=server['debug'])
    return True


def init_db(args):
    """Create database tables.

    Args:
        args: Command-line arguments; 'drop' drops existing tables first

    Returns:
        True if tables were created successfully
    """
    log = get_logger('create_tables')

    try:
        init_application(args.database_url)

        if args.drop:
            log.info("Dropping existing tables...")
            db.drop_all_tables()
            log.info("Existing tables dropped successfully.")

        log.info("Creating database tables...")
        db.create_all_tables()
        log.info("Database tables created successfully.")

        with session_scope() as session:
            categories = session.scalar(select(func.count()).select_from(Category))
            products = session.scalar(select(func.count()).select_from(Product))
        log.info(f"Catalog holds {categories} categories and {products} products.")
        return True

    except Exception as e:
        log_exception("create_tables", e, "Error creating database tables")
        return False


def write_config(args):
    target = config.save(args.path)
    print(f"Configuration written to {target}")
    return True


def main(argv=None):
    parser = argparse.ArgumentParser(description='ConnectChain marketplace admin backend')
    parser.add_argument('--database-url', help='Override the configured database URL')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    serve_parser = subparsers.add_parser('serve', help='Run the HTTP API')
    serve_parser.add_argument('--host', help='Bind address')
    serve_parser.add_argument('--port', type=int, help='Port to listen on')

    init_parser = subparsers.add_parser('init-db', help='Create database tables')
    init_parser.add_argument('--drop', '-d', action='store_true', help='Drop existing tables before creating new ones')

    config_parser = subparsers.add_parser('write-config', help='Write the current configuration to an INI file')
    config_parser.add_argument('--path', help='Target file, defaults to the active configuration path')

    args = parser.parse_args(argv)

    commands = {
        'serve': serve,
        'init-db': init_db,
        'write-config': write_config,
    }

    if args.command not in commands:
        parser.print_help()
        return 1

    return 0 if commands[args.command](args) else 1


if __name__ == '__main__':
    sys.exit(main())
