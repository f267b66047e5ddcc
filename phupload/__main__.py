#!/usr/bin/env python3
"""phupload - publish a new photo to several platforms and websites.

This is the main CLI entry point. It reads the photo's metadata, uploads it
to Cloudinary, runs any custom scripts with the resulting URL and uploads
it to Flickr, authorizing with Flickr on first use.

Usage:
    python -m phupload photo.jpg
    python -m phupload photo.jpg --debug
    python -m phupload --login
"""

import sys
import logging
import argparse
from pathlib import Path
from typing import List, Optional, Tuple

from ._version import __version__
from .config import ConfigManager
from .config.defaults import DESTINATIONS
from .config.manager import ConfigError
from .metadata import MetadataError, get_metadata
from .publishers import (
    CloudinaryPublisher,
    FlickrPublisher,
    PublishError,
    Publisher,
    ScriptPublisher,
    Upload,
)


def setup_logging(verbose: bool = False, config: Optional[ConfigManager] = None) -> None:
    """Configure logging for the application.

    Args:
        verbose: If True, enable DEBUG level logging
        config: Loaded configuration, used for the optional log file
    """
    level = logging.DEBUG if verbose else logging.INFO

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        '%(levelname)s - %(name)s - %(message)s'
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(console_handler)

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.INFO if verbose else logging.WARNING)

    log_file = config.get("logging.file") if config else None
    if log_file:
        log_path = Path(log_file).expanduser()
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
        except OSError as e:
            root_logger.warning(f"Could not open log file {log_path}: {e}")
            return
        file_handler.setLevel(logging.DEBUG)  # Always DEBUG in file
        file_handler.setFormatter(logging.Formatter(
            config.get(
                "logging.format",
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
        ))
        root_logger.addHandler(file_handler)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog="phupload",
        description="Publish a new photo to several platforms and websites",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Upload a photo to every configured destination
  phupload ~/Pictures/sunset.jpg

  # Authorize phupload with Flickr without uploading anything
  phupload --login

  # Print the authorization URL instead of opening a browser
  phupload ~/Pictures/sunset.jpg --no-browser
"""
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"phupload {__version__}"
    )
    parser.add_argument(
        "path",
        nargs="?",
        metavar="PATH",
        help="The path to the photo to upload"
    )
    parser.add_argument(
        "--login",
        action="store_true",
        help="Only run the Flickr authorization flow"
    )
    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Do not open the authorization page automatically"
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to config file (default: ~/.phupload/config.yaml)"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Print extra information to the console"
    )

    args = parser.parse_args(argv)
    if not args.path and not args.login:
        parser.error("PATH is required unless --login is given")
    return args


def build_publishers(
    config: ConfigManager,
    open_browser: Optional[bool] = None
) -> Tuple[Optional[Publisher], List[Publisher], Optional[Publisher]]:
    """Create the configured destinations.

    Returns:
        Tuple of (cloudinary, scripts, flickr); absent destinations are None
        or an empty list

    Raises:
        ConfigError: If the script section is not a list of mappings
        PublisherConfigError: If a configured section is incomplete
    """
    cloudinary = None
    if config.has_section("cloudinary"):
        cloudinary = CloudinaryPublisher.from_config(
            config.get("cloudinary"), timeout=int(config.get("upload.timeout"))
        )

    script_sections = config.get("script") or []
    if not isinstance(script_sections, list) or not all(
        isinstance(section, dict) for section in script_sections
    ):
        raise ConfigError(
            "'script' must be a list of entries with a 'path', e.g.\n"
            "script:\n  - path: /path/to/script"
        )
    scripts = [ScriptPublisher.from_config(section) for section in script_sections]

    flickr = None
    if config.has_section("flickr"):
        flickr = FlickrPublisher.from_config(config, open_browser=open_browser)

    return cloudinary, scripts, flickr


def publish(
    photo: Upload,
    cloudinary: Optional[Publisher],
    scripts: List[Publisher],
    flickr: Optional[Publisher]
) -> List[PublishError]:
    """Send a photo to every destination.

    Cloudinary runs first so its URL can be handed to the scripts. A failing
    destination does not stop the others.

    Returns:
        Errors raised by destinations, in order
    """
    logger = logging.getLogger(__name__)
    errors = []

    if cloudinary is not None:
        try:
            photo.url = cloudinary.upload(photo)
        except PublishError as e:
            logger.error(str(e))
            errors.append(e)

    for script in scripts:
        try:
            script.upload(photo)
        except PublishError as e:
            logger.error(str(e))
            errors.append(e)

    if flickr is not None:
        try:
            flickr.upload(photo)
        except PublishError as e:
            logger.error(str(e))
            errors.append(e)

    return errors


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the phupload CLI.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    args = parse_arguments(argv)
    logger = logging.getLogger(__name__)
    open_browser = False if args.no_browser else None

    try:
        config = ConfigManager.load(config_path=args.config)
        setup_logging(args.debug, config)

        if args.login:
            if not config.has_section("flickr"):
                raise ConfigError("No 'flickr' section in the configuration file")
            FlickrPublisher.from_config(config, open_browser=open_browser).authorize()
            print("✓ Flickr authorization is set up")
            return 0

        cloudinary, scripts, flickr = build_publishers(config, open_browser)
        if cloudinary is None and not scripts and flickr is None:
            raise ConfigError(
                f"No destinations configured; add one of: {', '.join(DESTINATIONS)}"
            )

        metadata = get_metadata(args.path)
        photo = Upload(path=args.path, metadata=metadata)

        errors = publish(photo, cloudinary, scripts, flickr)
        if errors:
            print(f"✗ {len(errors)} destination(s) failed. Run with --debug for details.")
            return 1

        print("✓ Photo published")
        return 0

    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        print(f"✗ Configuration Error: {e}")
        return 2

    except MetadataError as e:
        logger.error(f"Metadata error: {e}", exc_info=args.debug)
        print(f"✗ Metadata Error: {e}")
        return 3

    except PublishError as e:
        logger.error(f"{e}", exc_info=args.debug)
        print(f"✗ {e}")
        return 1

    except KeyboardInterrupt:
        print()
        print("Interrupted by user")
        return 130

    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        print(f"✗ Unexpected Error: {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        else:
            print("Run with --debug for detailed error information")
        return 1


if __name__ == "__main__":
    sys.exit(main())
