import argparse
import itertools
import logging.config
import os
import shutil
import tempfile
import zlib
from typing import Any, Callable, Optional

import psutil

from bucketmap.config import DEFAULT_DEDUPE_BUCKETS, DEFAULT_INITIAL_CAPACITY, DEFAULT_LOAD_FACTOR, LOGGING
from bucketmap.hash_table import NOT_FOUND, ConfigurationError, HashTable, validate_config
from bucketmap.logger.log_types import LogEvent
from bucketmap.logger.logger import log_dedupe_event

CHUNK_SIZE = 100000
BUFFER_SIZE = 1 << 20


def get_memory_usage() -> int:
    """Return current process RSS memory usage in bytes."""
    return psutil.Process(os.getpid()).memory_info().rss


def _memory_mb() -> float:
    return get_memory_usage() / 1e6


def bucket_of(line: str, num_buckets: int) -> int:
    return zlib.crc32(line.encode("utf-8", "ignore")) % num_buckets


def _line_ending(line: str) -> str:
    for ending in ("\r\n", "\n", "\r"):
        if line.endswith(ending):
            return ending
    return ""


def partition_file(input_path: str, bucket_dir: str, num_buckets: int) -> None:
    log_dedupe_event(LogEvent.PARTITION_STARTED, _memory_mb(), buckets=num_buckets)
    os.makedirs(bucket_dir, exist_ok=True)
    bucket_files = [
        open(
            os.path.join(bucket_dir, f"bucket_{i}.txt"),
            "w",
            encoding="utf-8",
            newline="",
            buffering=BUFFER_SIZE
        )
        for i in range(num_buckets)
    ]
    lines = 0
    terminator = "\n"
    try:
        with open(input_path, "r", encoding="utf-8", newline="") as fin:
            while True:
                # Read a chunk of lines to keep memory flat on huge inputs
                chunk = list(itertools.islice(fin, CHUNK_SIZE))
                if not chunk:
                    break
                for line in chunk:
                    ending = _line_ending(line)
                    if ending:
                        terminator = ending
                    else:
                        # unterminated last line takes the file's own ending
                        line += terminator
                    bucket_files[bucket_of(line, num_buckets)].write(line)
                lines += len(chunk)
    finally:
        for f in bucket_files:
            f.close()
    log_dedupe_event(LogEvent.PARTITION_FINISHED, _memory_mb(), lines=lines)


def dedupe_bucket(
    bucket_path: str,
    deduped_path: str,
    bucket_index: int,
    hash_function: Optional[Callable[[Any], int]] = None,
    initial_capacity: int = DEFAULT_INITIAL_CAPACITY,
    load_factor: float = DEFAULT_LOAD_FACTOR,
) -> int:
    seen = HashTable(initial_capacity, load_factor, hash_function)
    lines = 0
    with open(bucket_path, "r", encoding="utf-8", newline="", buffering=BUFFER_SIZE) as fin, \
            open(deduped_path, "w", encoding="utf-8", newline="", buffering=BUFFER_SIZE) as fout:
        for idx, line in enumerate(fin, start=1):
            lines = idx
            if seen.put_if_absent(line, idx) is NOT_FOUND:
                fout.write(line)

    stats = seen.stats()
    log_dedupe_event(
        LogEvent.BUCKET_DEDUPED,
        _memory_mb(),
        bucket_index,
        lines=lines,
        unique=stats["size"],
        capacity=stats["capacity"],
        resizes=stats["resizes"],
        longest_chain=stats["longest_chain"],
    )
    return seen.size()


def dedupe_large_file(
    input_file: str,
    output_file: str,
    num_buckets: int = DEFAULT_DEDUPE_BUCKETS,
    hash_function: Optional[Callable[[Any], int]] = None,
    initial_capacity: int = DEFAULT_INITIAL_CAPACITY,
    load_factor: float = DEFAULT_LOAD_FACTOR,
    keep_temp: bool = False,
) -> int:
    """
    remove duplicate lines from a large file by:
     1. partitioning into crc32-based bucket files.
     2. deduplicating each bucket file through a HashTable.
     3. merging the results.
    returns the number of unique lines written.
    """
    output_dir = os.path.dirname(os.path.abspath(output_file)) or "."
    temp_root = tempfile.mkdtemp(prefix="bucketmap-", dir=output_dir)
    buckets_dir = os.path.join(temp_root, "buckets")
    deduped_dir = os.path.join(temp_root, "deduplicated")

    try:
        os.makedirs(deduped_dir, exist_ok=True)
        partition_file(input_file, buckets_dir, num_buckets)

        unique = 0
        for i in range(num_buckets):
            b_in = os.path.join(buckets_dir, f"bucket_{i}.txt")
            b_out = os.path.join(deduped_dir, f"bucket_{i}.dedup.txt")
            unique += dedupe_bucket(b_in, b_out, i, hash_function, initial_capacity, load_factor)

        with open(output_file, "w", encoding="utf-8", newline="", buffering=BUFFER_SIZE) as fout:
            for i in range(num_buckets):
                part_path = os.path.join(deduped_dir, f"bucket_{i}.dedup.txt")
                with open(part_path, "r", encoding="utf-8", newline="", buffering=BUFFER_SIZE) as fin:
                    shutil.copyfileobj(fin, fout)
    finally:
        if not keep_temp:
            shutil.rmtree(temp_root, ignore_errors=True)

    log_dedupe_event(LogEvent.MERGE_FINISHED, _memory_mb(), unique=unique, output_file=output_file)
    return unique


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bucketmap-dedupe",
        description="Remove duplicate lines from a large text file."
    )
    parser.add_argument(
        "-i",
        "--input_file",
        required=True,
        type=str,
        help="Path to the large text file to deduplicate",
    )
    parser.add_argument(
        "-o",
        "--output_file",
        required=True,
        type=str,
        help="Path where deduplicated lines will be written",
    )
    parser.add_argument(
        "-b",
        "--buckets",
        type=int,
        default=DEFAULT_DEDUPE_BUCKETS,
        help="Number of partition files to use (more buckets, less RAM per bucket)",
    )
    parser.add_argument(
        "--initial-capacity",
        type=int,
        default=DEFAULT_INITIAL_CAPACITY,
        help="Initial bucket array size of each table (rounded up to a power of two)",
    )
    parser.add_argument(
        "--load-factor",
        type=float,
        default=DEFAULT_LOAD_FACTOR,
        help="Occupancy ratio in (0, 1] that triggers a table resize",
    )
    parser.add_argument(
        "--keep-temp",
        action="store_true",
        help="Keep the bucketmap-* temporary directory next to the output file",
    )
    return parser


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.config.dictConfig(LOGGING)

    if args.buckets < 1:
        parser.error(f"--buckets must be at least 1, got {args.buckets}")
    if not os.path.isfile(args.input_file):
        parser.error(f"input file not found: {args.input_file}")
    try:
        validate_config(args.initial_capacity, args.load_factor)
    except ConfigurationError as e:
        parser.error(str(e))

    dedupe_large_file(
        args.input_file,
        args.output_file,
        num_buckets=args.buckets,
        initial_capacity=args.initial_capacity,
        load_factor=args.load_factor,
        keep_temp=args.keep_temp,
    )


if __name__ == "__main__":
    main()
