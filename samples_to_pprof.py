#!/usr/bin/env python3

import argparse
import logging

from sampleprof.config import (
    DEFAULT_STRIP_SOURCE_FILE_NAME_PREFIX,
    ProfileConfig,
    parse_process_filter,
)
from sampleprof.parse_sample_trace import parse_sample_trace
from sampleprof.profile_writer import ProfileBuilder

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 10000


def run(filename, out, config):
    builder = ProfileBuilder(filename, config)
    for i, sample in enumerate(parse_sample_trace(filename)):
        if i % PROGRESS_INTERVAL == 0:
            logger.debug(f"{i} samples processed")
        builder.add_sample(sample)

    stats = builder.stats
    logger.info(
        f"{stats.accepted_count} samples exported, {stats.skipped_count} filtered out"
    )
    size = builder.write(out)
    logger.info(f"Wrote {size:,} bytes to {out}")
    return size


def _config_from_args(args):
    return ProfileConfig(
        include_inlined_functions=args.include_inlined_functions,
        include_process_ids=args.include_process_ids,
        include_process_and_thread_ids=args.include_process_and_thread_ids,
        strip_source_file_name_prefix=args.strip_source_file_name_prefix,
        time_start=args.time_start if args.time_start is not None else 0,
        time_end=args.time_end if args.time_end is not None else float("inf"),
        process_filter_set=parse_process_filter(args.process_filter),
    )


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Transform symbolized CPU samples to a gzipped pprof profile."
    )
    parser.add_argument(
        "filename", type=str, help="The filename of the samples (JSON lines)"
    )
    parser.add_argument(
        "-o",
        "--out",
        type=str,
        help="The output filename (gzipped pprof profile)",
        default="profile.pb.gz",
    )
    parser.add_argument(
        "-p",
        "--process-filter",
        type=str,
        help="Comma-separated process names to export; '*' exports all processes",
        default="chrome.exe,dwm.exe,audiodg.exe",
    )
    parser.add_argument(
        "--include-inlined-functions",
        action="store_true",
        help="Include inlined functions in the exported profile",
    )
    parser.add_argument(
        "--include-process-ids",
        action="store_true",
        help="Include process ids in the exported profile",
    )
    parser.add_argument(
        "--include-process-and-thread-ids",
        action="store_true",
        help="Include process and thread ids in the exported profile",
    )
    parser.add_argument(
        "--strip-source-file-name-prefix",
        type=str,
        help="Prefix regex to strip out of source file names",
        default=DEFAULT_STRIP_SOURCE_FILE_NAME_PREFIX,
    )
    parser.add_argument(
        "--time-start", type=float, help="Start of time range to export in seconds"
    )
    parser.add_argument(
        "--time-end", type=float, help="End of time range to export in seconds"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress")
    args = parser.parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s %(message)s",
        level=logging.DEBUG if args.verbose else logging.INFO,
    )

    try:
        config = _config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    run(args.filename, args.out, config)
    return 0


if __name__ == "__main__":
    main()
