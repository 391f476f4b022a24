#!/usr/bin/env python3
"""
Dump Zendesk Help Center articles to Markdown.
Handles:
- Paging through the Help Center articles API
- Converting article HTML bodies to Markdown
- Writing one file per article, or a single combined file
- Logging and reporting
- Uploading logs to DigitalOcean Spaces
"""

import os
import sys
import logging
import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from datetime import datetime
from dotenv import load_dotenv

import boto3
from botocore.config import Config as BotoConfig

from scrape_articles import (
    ArticleFetchError,
    ConfigurationError,
    CONVERTERS,
    build_articles_url,
    build_auth,
    get_converter,
    iter_article_pages,
    make_session,
)
from write_articles import (
    COMBINED_FILENAME,
    FILENAME_STYLES,
    EmptyArticleSetError,
    save_article_as_markdown,
    save_articles_combined,
)

DEFAULT_OUTPUT_DIR = "articles"
DEFAULT_LOG_DIR = "logs"
DEFAULT_TIMEOUT = 30.0


@dataclass
class Config:
    subdomain: Optional[str]
    output_dir: Path
    combine: bool = False
    filename_style: str = "id"
    converter: str = "markdown"
    email: Optional[str] = None
    api_token: Optional[str] = None
    oauth_token: Optional[str] = None
    api_url: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    log_dir: Path = Path(DEFAULT_LOG_DIR)

    @property
    def start_url(self) -> str:
        return self.api_url or build_articles_url(self.subdomain)


LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(log_dir=DEFAULT_LOG_DIR):
    """
    Send the zendesk_dump logger to the console and two files under log_dir:
    last_run.log holds only this run, dump.log accumulates every run.
    """
    logs_dir = Path(log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)
    last_run_log = logs_dir / "last_run.log"

    logger = logging.getLogger("zendesk_dump")
    logger.setLevel(logging.INFO)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers = [
        logging.FileHandler(last_run_log, mode='w', encoding='utf-8'),
        logging.FileHandler(logs_dir / "dump.log", mode='a', encoding='utf-8'),
        logging.StreamHandler(),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger, last_run_log


class DumpArgumentParser(argparse.ArgumentParser):
    """Report bad flags as ConfigurationError so main() can exit with 1."""

    def error(self, message):
        raise ConfigurationError(message)


def build_parser():
    parser = DumpArgumentParser(
        description="Dump Zendesk Help Center articles to Markdown files.",
    )
    parser.add_argument("-subdomain", "--subdomain", help="Zendesk subdomain (required, or set ZENDESK_SUBDOMAIN)")
    parser.add_argument("-output", "--output", help=f"Output directory for markdown files (default: {DEFAULT_OUTPUT_DIR})")
    parser.add_argument("-combine", "--combine", action="store_true", help="Combine all articles into a single file")
    parser.add_argument(
        "-filename-style", "--filename-style",
        choices=FILENAME_STYLES,
        default="id",
        help="Name files by article id, or by id and title (default: id)",
    )
    parser.add_argument(
        "-converter", "--converter",
        choices=list(CONVERTERS),
        default="markdown",
        help="How to convert article bodies; 'none' keeps the raw HTML (default: markdown)",
    )
    parser.add_argument("-timeout", "--timeout", type=float, help=f"Request timeout in seconds (default: {DEFAULT_TIMEOUT:g})")
    parser.add_argument("-log-dir", "--log-dir", help=f"Directory for log files (default: {DEFAULT_LOG_DIR})")
    return parser


def load_config(argv=None, parser=None) -> Config:
    """Resolve configuration from flags first, then environment variables."""
    load_dotenv()
    parser = parser or build_parser()
    args = parser.parse_args(argv)

    subdomain = args.subdomain or os.getenv("ZENDESK_SUBDOMAIN")
    # An explicit -subdomain beats a listing URL from the environment
    api_url = None if args.subdomain else (os.getenv("ZENDESK_API_URL") or None)
    if not subdomain and not api_url:
        raise ConfigurationError("Required argument is not provided: -subdomain (or ZENDESK_SUBDOMAIN)")

    timeout = args.timeout
    if timeout is None:
        raw_timeout = os.getenv("ZENDESK_TIMEOUT")
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT
        except ValueError:
            raise ConfigurationError(f"ZENDESK_TIMEOUT must be a number, got {raw_timeout!r}") from None
    if timeout <= 0:
        raise ConfigurationError(f"Timeout must be positive, got {timeout:g}")

    email = os.getenv("ZENDESK_EMAIL") or None
    api_token = os.getenv("ZENDESK_API_TOKEN") or None
    oauth_token = os.getenv("ZENDESK_OAUTH_TOKEN") or None
    # Rejects half-configured Basic credentials before anything runs
    build_auth(email, api_token, oauth_token)

    return Config(
        subdomain=subdomain,
        output_dir=Path(args.output or os.getenv("ZENDESK_OUTPUT_DIR") or DEFAULT_OUTPUT_DIR),
        combine=args.combine,
        filename_style=args.filename_style,
        converter=args.converter,
        email=email,
        api_token=api_token,
        oauth_token=oauth_token,
        api_url=api_url,
        timeout=timeout,
        log_dir=Path(args.log_dir or os.getenv("LOG_DIR") or DEFAULT_LOG_DIR),
    )


def upload_logs_to_spaces(logger, log_dir, key_prefix=""):
    """Upload logs to DigitalOcean Spaces."""
    spaces_key = os.getenv("DO_SPACES_KEY")
    spaces_secret = os.getenv("DO_SPACES_SECRET")
    spaces_bucket = os.getenv("DO_SPACES_BUCKET")
    spaces_region = os.getenv("DO_SPACES_REGION", "nyc3")

    if not all([spaces_key, spaces_secret, spaces_bucket]):
        logger.info("DigitalOcean Spaces credentials not set, skipping log upload")
        return None

    # Flush so the uploaded files include this run
    for handler in logger.handlers:
        handler.flush()

    try:
        s3 = boto3.client(
            's3',
            region_name=spaces_region,
            endpoint_url=f'https://{spaces_region}.digitaloceanspaces.com',
            aws_access_key_id=spaces_key,
            aws_secret_access_key=spaces_secret,
            config=BotoConfig(signature_version='s3v4')
        )

        uploaded = {}
        for log_file in (Path(log_dir) / "last_run.log", Path(log_dir) / "dump.log"):
            if not log_file.exists() or log_file.stat().st_size == 0:
                logger.warning(f"{log_file.name} not found or empty, skipping")
                continue

            key = f"{key_prefix}/{log_file.name}" if key_prefix else log_file.name
            s3.upload_file(str(log_file), spaces_bucket, key)
            uploaded[log_file.name] = s3.generate_presigned_url(
                'get_object',
                Params={'Bucket': spaces_bucket, 'Key': key},
                ExpiresIn=7*24*60*60  # 7 days, the Spaces maximum
            )
            logger.info(f"✓ Uploaded {log_file.name} to Spaces as {key}")

        return uploaded
    except Exception as e:
        logger.warning(f"Failed to upload logs to Spaces: {e}")
        return None


def dump_articles(config: Config, session=None):
    """Fetch every article and write it out. Returns run counters."""
    logger = logging.getLogger("zendesk_dump")

    convert = get_converter(config.converter)
    if session is None:
        session = make_session(build_auth(config.email, config.api_token, config.oauth_token))

    config.output_dir.mkdir(parents=True, exist_ok=True)

    stats = {"pages": 0, "fetched": 0, "saved": 0, "skipped": 0, "combined_file": None}
    collected = []

    for page in iter_article_pages(session, config.start_url, timeout=config.timeout):
        stats["pages"] += 1
        stats["fetched"] += len(page.articles)

        if config.combine:
            collected.extend(page.articles)
            continue

        for article in page.articles:
            try:
                save_article_as_markdown(article, config.output_dir, config.filename_style, convert)
                stats["saved"] += 1
            except OSError as e:
                logger.error(f"Error saving article {article.id}: {e}")
                stats["skipped"] += 1

    if config.combine:
        combined_file = save_articles_combined(collected, config.output_dir / COMBINED_FILENAME, convert)
        stats["saved"] = len(collected)
        stats["combined_file"] = str(combined_file)

    return stats


def main(argv=None):
    """Main job orchestrator."""
    parser = build_parser()
    try:
        config = load_config(argv, parser)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1

    logger, log_file = setup_logging(config.log_dir)

    logger.info("=" * 70)
    logger.info("Zendesk Article Dump")
    logger.info(f"Started at: {datetime.now().isoformat()}")
    logger.info(f"Output: {config.output_dir.absolute()} ({'combined' if config.combine else config.filename_style})")
    logger.info("=" * 70)

    exit_code = 1
    try:
        stats = dump_articles(config)

        logger.info("-" * 70)
        logger.info("Article dump completed successfully!")
        logger.info(f"Pages fetched:    {stats['pages']}")
        logger.info(f"Articles fetched: {stats['fetched']}")
        logger.info(f"Articles saved:   {stats['saved']}")
        logger.info(f"Articles skipped: {stats['skipped']}")
        if stats["combined_file"]:
            logger.info(f"Combined file:    {stats['combined_file']}")
        logger.info("-" * 70)
        exit_code = 0
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
    except ArticleFetchError as e:
        logger.error(f"Error fetching articles: {e}")
    except EmptyArticleSetError as e:
        logger.error(f"Error saving combined articles: {e}")
    except OSError as e:
        logger.error(f"Error writing output: {e}")
    except Exception as e:
        logger.error(f"Error: {e}", exc_info=True)

    if exit_code:
        logger.error("=" * 70)
        logger.error("DUMP FAILED")
        logger.error("=" * 70)

    logger.info(f"Log file: {log_file}")
    upload_logs_to_spaces(logger, config.log_dir, key_prefix=config.subdomain or "")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
