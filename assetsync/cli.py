"""
Command Line Interface for asset sync, status and the edge image server.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

import urllib3
from bottle import run as run_server

from .asset_config import ProcessingConfig
from .dev_images import DevImages
from .edge_resolver import EdgeResolver
from .edge_server import EdgeImageServer, ResponseCache, create_app
from .exceptions import ConfigurationError, StoreTransientError
from .local_client import LocalClient, LocalConfig
from .manifest import Manifest
from .processor import AssetProcessor
from .reporter import Reporter
from .s3_client import S3Client
from .s3_config import S3Config
from .sync_progress import SyncProgress


def setup_logging(verbose: bool) -> logging.Logger:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logging.getLogger('boto3').setLevel(logging.WARNING)
    logging.getLogger('botocore').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    return logging.getLogger('assetsync')


def get_s3_config(args: argparse.Namespace) -> S3Config:
    """Get S3 configuration from environment and CLI overrides."""
    config = S3Config.from_env()

    if getattr(args, 's3_endpoint', None):
        config.endpoint = args.s3_endpoint
    if getattr(args, 's3_bucket', None):
        config.bucket = args.s3_bucket
    if getattr(args, 's3_prefix', None):
        config.prefix = args.s3_prefix
    if getattr(args, 's3_access_key', None):
        config.access_key = args.s3_access_key
    if getattr(args, 's3_secret_key', None):
        config.secret_key = args.s3_secret_key

    return config


def get_storage_client(args: argparse.Namespace, logger: logging.Logger):
    """
    Get the object store selected by the arguments.

    Raises:
        ConfigurationError: Mandatory settings are missing
    """
    local_root = getattr(args, 'local_root', None)

    if local_root:
        config = LocalConfig(root_path=local_root, prefix=getattr(args, 'local_prefix', None) or '')
        client = LocalClient(config, logger)
        logger.info(f"Storage: Local filesystem ({config.base_path})")
        return client

    config = get_s3_config(args)
    if not config.verify_ssl:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    client = S3Client(config, logger)
    logger.info(f"Storage: S3 {config.endpoint} bucket={config.bucket}")
    return client


def load_processing_config(args: argparse.Namespace) -> ProcessingConfig:
    path = args.config
    if not os.path.isabs(path):
        path = os.path.join(args.base_dir, path)
    return ProcessingConfig.load(path)


def log_configuration_error(logger: logging.Logger, error: ConfigurationError) -> None:
    for problem in error.problems or [str(error)]:
        logger.error(problem)


def add_storage_arguments(parser: argparse.ArgumentParser) -> None:
    """Add storage configuration arguments to a parser."""
    local_group = parser.add_argument_group('Local Storage')
    local_group.add_argument('--local-root', metavar='PATH',
                             help='Use a local directory instead of S3 (e.g., ./dist-assets)')
    local_group.add_argument('--local-prefix', default='',
                             help='Sub-directory within local root')

    s3_group = parser.add_argument_group('S3 Storage')
    s3_group.add_argument('--s3-endpoint', help='Override S3_ENDPOINT')
    s3_group.add_argument('--s3-bucket', help='Override S3_BUCKET')
    s3_group.add_argument('--s3-prefix', help='Override S3_PREFIX')
    s3_group.add_argument('--s3-access-key', help='Override S3_ACCESS_KEY')
    s3_group.add_argument('--s3-secret-key', help='Override S3_SECRET_KEY')


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--config', default='assets.config.json', help='Processing config (JSON)')
    parser.add_argument('--base-dir', default=os.getcwd(), help='Project root (default: current directory)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')


def cmd_sync(args: argparse.Namespace) -> int:
    """Execute sync command: process every source file and save the manifest."""
    logger = setup_logging(args.verbose)

    try:
        config = load_processing_config(args)
        if args.workers:
            config.workers = args.workers
        if args.force:
            config.skip_unchanged = False
        store = get_storage_client(args, logger)
    except ConfigurationError as e:
        log_configuration_error(logger, e)
        return 1
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    processor = AssetProcessor(
        store=store,
        config=config,
        base_dir=args.base_dir,
        dry_run=args.dry_run,
        logger=logger,
    )
    progress = SyncProgress(
        show_files=args.show_files,
        on_progress=config.on_progress,
        on_error=config.on_error,
        logger=logger,
    )

    try:
        stats = processor.process_all(progress=progress, prune=args.prune, limit=args.limit,
                                      resume_after=args.resume)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    if not args.quiet:
        reporter = Reporter()
        reporter.report_sync(stats)
        if not args.dry_run:
            manifest = Manifest.load(processor.manifest_path)
            print()
            reporter.report_storage(manifest.storage)

    return 0 if stats.errors == 0 else 1


def cmd_status(args: argparse.Namespace) -> int:
    """Execute status command: storage usage and manifest counts."""
    logger = setup_logging(args.verbose)

    try:
        config = load_processing_config(args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    manifest_path = os.path.join(args.base_dir, config.manifest_path)
    try:
        manifest = Manifest.load(manifest_path)
    except ValueError as e:
        logger.error(f"Failed to load manifest {manifest_path}: {e}")
        return 1

    status = None
    if not args.offline:
        try:
            store = get_storage_client(args, logger)
            status = manifest.refresh_storage(store, config.storage_limit)
        except ConfigurationError as e:
            log_configuration_error(logger, e)
            logger.warning("Showing storage status recorded in the manifest")
        except StoreTransientError as e:
            logger.warning(f"Could not reach storage: {e}")

    Reporter().report_status(manifest, status)
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Execute serve command: run the edge image server."""
    logger = setup_logging(args.verbose)

    try:
        config = load_processing_config(args)
        store = get_storage_client(args, logger)
    except ConfigurationError as e:
        log_configuration_error(logger, e)
        return 1
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    resolver = EdgeResolver(
        store,
        sizes=config.sizes,
        formats=config.formats,
        key_prefix=args.key_prefix,
        logger=logger,
    )
    server = EdgeImageServer(resolver, cache=ResponseCache(args.cache_size), logger=logger)
    logger.info(f"Serving images on http://{args.host}:{args.port}/images/")
    run_server(create_app(server), host=args.host, port=args.port, quiet=not args.verbose)
    return 0


def images_dir_for(config: ProcessingConfig, args: argparse.Namespace) -> str:
    """Local directory for the key prefix: --images-dir, else the matching source directory."""
    directory = args.images_dir
    if not directory:
        matches = [d for d, prefix in config.sources if prefix.strip('/') == args.key_prefix.strip('/')]
        directory = matches[0] if matches else os.path.join('public', args.key_prefix)
    if not os.path.isabs(directory):
        directory = os.path.join(args.base_dir, directory)
    return directory


def get_dev_images(args: argparse.Namespace, logger: logging.Logger) -> DevImages:
    """
    Build the local/remote image comparer.

    Raises:
        ConfigurationError: Storage settings are missing
        ValueError: The processing config is invalid
    """
    config = load_processing_config(args)
    store = get_storage_client(args, logger)
    return DevImages(store, images_dir_for(config, args), prefix=args.key_prefix, logger=logger)


def cmd_check(args: argparse.Namespace) -> int:
    """Execute check command: list remote originals missing locally."""
    logger = setup_logging(args.verbose)

    try:
        dev_images = get_dev_images(args, logger)
        status = dev_images.check()
    except ConfigurationError as e:
        log_configuration_error(logger, e)
        return 1
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    except StoreTransientError as e:
        logger.error(f"Could not list remote images: {e}")
        return 1

    Reporter().report_dev_images(status)
    return 0


def cmd_pull(args: argparse.Namespace) -> int:
    """Execute pull command: download remote originals missing locally."""
    logger = setup_logging(args.verbose)

    try:
        dev_images = get_dev_images(args, logger)
        status = dev_images.check()
    except ConfigurationError as e:
        log_configuration_error(logger, e)
        return 1
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    except StoreTransientError as e:
        logger.error(f"Could not list remote images: {e}")
        return 1

    reporter = Reporter()
    reporter.report_dev_images(status)
    print()
    result = dev_images.pull(status, dry_run=args.dry_run)
    reporter.report_pull(result)
    return 0 if not result.failed else 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='assetsync',
        description='Image optimization, upload and edge serving for static sites',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Workflow:
  1. Sync:   python -m assetsync sync
  2. Status: python -m assetsync status
  3. Serve:  python -m assetsync serve --port 8787
  4. Dev:    python -m assetsync check / pull

Storage options:
  Use --local-root for a local directory, or S3_* / R2_* environment variables.
"""
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    sync_parser = subparsers.add_parser('sync', help='Process source files and upload variants')
    add_common_arguments(sync_parser)
    sync_parser.add_argument('-n', '--dry-run', action='store_true', help='Show what would be done')
    sync_parser.add_argument('-f', '--force', action='store_true', help='Reprocess unchanged files')
    sync_parser.add_argument('--prune', action='store_true',
                             help='Drop manifest entries whose source file is gone')
    sync_parser.add_argument('-w', '--workers', type=int, help='Files processed concurrently')
    sync_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress summary output')
    sync_parser.add_argument('--show-files', action='store_true', help='Print each file as processed')
    sync_parser.add_argument('--limit', type=int, metavar='N', help='Limit to N files (for testing)')
    sync_parser.add_argument('--resume', metavar='PATH',
                             help='Continue after this relative path (e.g., images/gallery/a.jpg)')
    add_storage_arguments(sync_parser)

    status_parser = subparsers.add_parser('status', help='Show storage usage and manifest counts')
    add_common_arguments(status_parser)
    status_parser.add_argument('--offline', action='store_true',
                               help='Use the storage status saved in the manifest')
    add_storage_arguments(status_parser)

    serve_parser = subparsers.add_parser('serve', help='Run the edge image server')
    add_common_arguments(serve_parser)
    serve_parser.add_argument('--host', default='127.0.0.1', help='Bind address')
    serve_parser.add_argument('-p', '--port', type=int, default=8787, help='Port')
    serve_parser.add_argument('--key-prefix', default='images', help='Store prefix for /images/ paths')
    serve_parser.add_argument('--cache-size', type=int, default=512, help='Cached responses (0 disables)')
    add_storage_arguments(serve_parser)

    check_parser = subparsers.add_parser('check', help='List remote original images missing locally')
    add_common_arguments(check_parser)
    check_parser.add_argument('--key-prefix', default='images', help='Store prefix of the originals')
    check_parser.add_argument('--images-dir', help='Local images directory (default: source for the prefix)')
    add_storage_arguments(check_parser)

    pull_parser = subparsers.add_parser('pull', help='Download remote original images missing locally')
    add_common_arguments(pull_parser)
    pull_parser.add_argument('--key-prefix', default='images', help='Store prefix of the originals')
    pull_parser.add_argument('--images-dir', help='Local images directory (default: source for the prefix)')
    pull_parser.add_argument('-n', '--dry-run', action='store_true', help='Show what would be downloaded')
    add_storage_arguments(pull_parser)

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == 'sync':
        return cmd_sync(parsed_args)
    elif parsed_args.command == 'status':
        return cmd_status(parsed_args)
    elif parsed_args.command == 'serve':
        return cmd_serve(parsed_args)
    elif parsed_args.command == 'check':
        return cmd_check(parsed_args)
    elif parsed_args.command == 'pull':
        return cmd_pull(parsed_args)

    return 1


if __name__ == '__main__':
    sys.exit(main())
