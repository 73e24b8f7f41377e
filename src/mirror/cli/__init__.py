"""
Command-line interface for the anonymized mirror.

Available commands:
- mirror-sync [--full-reindex]: run the sync process
"""

from utils.logging import configure_from_env, shutdown_logging

from .commands import cmd_sync
from .credentials import resolve_database_uri
from .parser import create_parser


def main() -> None:
    """Main entry point for the mirror-sync CLI"""
    parser = create_parser()
    args = parser.parse_args()

    configure_from_env()
    try:
        cmd_sync(args)
    finally:
        shutdown_logging()


__all__ = [
    'main',
    'cmd_sync',
    'create_parser',
    'resolve_database_uri',
]


if __name__ == '__main__':
    main()
