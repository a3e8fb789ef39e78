"""CLI entry point."""

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

from cli.uploader_client import UploadClientError, UploaderClient
from common.constants import CLIENT_CHUNK_SIZE, DEFAULT_PUBLIC_BASE_URL
from common.logging_config import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recording-upload",
        description="Upload a recording to the chunked upload service",
    )
    parser.add_argument('--debug', action='store_true', help="Enable debug logging")

    subparsers = parser.add_subparsers(dest='command', required=True)

    upload = subparsers.add_parser('upload', help="Upload a file in chunks")
    upload.add_argument('file', type=Path, help="File to upload")
    upload.add_argument('--session', help="Session identifier (generated if omitted)")
    upload.add_argument('--chunk-size', type=int, default=CLIENT_CHUNK_SIZE, help="Bytes per chunk")
    upload.add_argument(
        '--screen-recording',
        action='store_true',
        help="Store chunks first and finalize explicitly",
    )
    upload.add_argument(
        '--server',
        default=os.getenv('UPLOAD_SERVER_URL', DEFAULT_PUBLIC_BASE_URL),
        help="Upload service URL",
    )
    upload.add_argument('--retries', type=int, default=3, help="Retries per request")

    status = subparsers.add_parser('status', help="Show the state of an upload session")
    status.add_argument('session', help="Session identifier")
    status.add_argument('--server', default=os.getenv('UPLOAD_SERVER_URL', DEFAULT_PUBLIC_BASE_URL))

    return parser


def run(args: argparse.Namespace) -> int:
    if args.command == 'upload':
        if not args.file.is_file():
            print(f"Error: {args.file} is not a file", file=sys.stderr)
            return 1

        with UploaderClient(args.server, max_retries=args.retries) as client:
            url = client.upload_file(
                args.file,
                session=args.session,
                chunk_size=args.chunk_size,
                screen_recording=args.screen_recording,
                progress=lambda done, total: print(f"Uploaded chunk {done}/{total}"),
            )
        print(url)
        return 0

    with UploaderClient(args.server) as client:
        state = client.status(args.session)
    print(f"Session: {state['session']}")
    print(f"State: {state['state']}")
    print(f"Received: {len(state['received'])}/{state['totalChunks']}")
    if state.get('missing'):
        print(f"Missing: {', '.join(str(i) for i in state['missing'])}")
    if state.get('url'):
        print(f"URL: {state['url']}")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for CLI."""
    args = build_parser().parse_args(argv)
    log_level = 'DEBUG' if args.debug else os.getenv('LOG_LEVEL', 'INFO')

    logger = setup_logging('cli', log_level=log_level)
    logger.info("CLI starting...")

    try:
        exit_code = run(args)
    except UploadClientError as e:
        logger.error(f"Upload failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        exit_code = 1
    finally:
        logger.info("CLI exiting")

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
