import argparse
import logging
import sys

from pes_extractor.configs import Settings, settings
from pes_extractor.processing import BatchSummary, log_summary, process_files


def build_parser() -> argparse.ArgumentParser:
    arg_parser = argparse.ArgumentParser(
        prog="pes-extract",
        description="Extracts H.264 video and A-law audio from raw PES capture files and muxes them into MKV.",
    )
    arg_parser.add_argument("files", nargs="+", help="PES capture file(s) to process")
    arg_parser.add_argument("--output-dir", help="Directory for output files (default: next to each input)")
    arg_parser.add_argument(
        "--keep-streams",
        action="store_true",
        default=None,
        help="Keep the extracted .h264/.alaw files after muxing",
    )
    arg_parser.add_argument("--log-level", help="Logging level (default: from settings, INFO)")
    arg_parser.add_argument("--progress", action="store_true", default=None, help="Show a progress bar")
    return arg_parser


def resolve_settings(args: argparse.Namespace, base: Settings = settings) -> Settings:
    """Apply command line overrides on top of environment/.env settings."""
    overrides = {
        "output_dir": args.output_dir,
        "keep_elementary_streams": args.keep_streams,
        "log_level": args.log_level.upper() if args.log_level else None,
        "enable_progress": args.progress,
    }
    return base.model_copy(update={key: value for key, value in overrides.items() if value is not None})


def cli(argv: list[str] | None = None) -> int:
    """
    Command line interface for batch PES extraction.

    Returns:
        0 if every file was processed successfully, 1 otherwise.
    """
    args = build_parser().parse_args(argv)
    config = resolve_settings(args)
    logging.basicConfig(level=config.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    results = process_files(args.files, config=config)
    summary = BatchSummary.from_results(results)
    log_summary(summary)
    return 0 if summary.all_succeeded else 1


def main() -> None:
    sys.exit(cli())


if __name__ == "__main__":
    main()
