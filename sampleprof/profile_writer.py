import gzip
import logging
import os

import sampleprof.profile_proto as pb2
from sampleprof.aggregator import AggregationStats, SampleAggregator
from sampleprof.config import ProfileConfig
from sampleprof.interning import FunctionInterner, LocationInterner, StringInterner
from sampleprof.sample_dto import CpuSample

logger = logging.getLogger(__name__)

TOOL_NAME = "samples-to-pprof"


class ProfileBuilder:
    """Builds a pprof CPU profile out of samples and writes it to a file.

    Samples are offered one at a time through `add_sample`; `write` finalizes
    the profile and can be called only once.
    """

    def __init__(self, source_file_name, config: ProfileConfig):
        self._source_file_name = source_file_name
        self._profile = pb2.Profile()
        self._strings = StringInterner(self._profile.string_table)
        self._functions = FunctionInterner(
            self._profile.function, self._strings, config.strip_prefix_regex
        )
        self._locations = LocationInterner(
            self._profile.location, self._functions, config.include_inlined_functions
        )
        self._aggregator = SampleAggregator(config, self._locations, self._profile.sample)
        self._finalized = False

        sample_type = self._profile.sample_type.add()
        sample_type.type = self._strings.get_id("cpu")
        sample_type.unit = self._strings.get_id("nanoseconds")

    @property
    def profile(self):
        """The profile message built so far."""
        return self._profile

    @property
    def stats(self) -> AggregationStats:
        return self._aggregator.stats

    def add_sample(self, sample: CpuSample) -> bool:
        """Offers a sample to the profile; returns True if it was exported."""
        self._check_not_finalized()
        return self._aggregator.accept(sample)

    def write(self, output_path) -> int:
        """Writes the gzipped profile to `output_path` and returns its size in bytes."""
        self._check_not_finalized()
        self._finalized = True

        self._add_comment(
            f"Converted by {TOOL_NAME} from {_base_name(self._source_file_name)}"
        )
        self._add_summary_comments()

        data = self._profile.SerializeToString()
        with open(output_path, "wb") as output:
            # No file name or timestamp in the gzip header, so output is reproducible.
            with gzip.GzipFile(filename="", mode="wb", fileobj=output, mtime=0) as f:
                f.write(data)
            return output.tell()

    def _add_summary_comments(self):
        stats = self.stats
        if not stats.has_time_span():
            self._add_comment("No samples exported")
            return

        wall_time_ms = stats.wall_time_ms()
        total_cpu_ms = _ms(stats.total_cpu_ns)
        self._add_comment(f"Wall time: {wall_time_ms:.2f} ms")
        self._add_comment(
            f"CPU time: {total_cpu_ms:.2f} ms "
            f"({_percent(total_cpu_ms, wall_time_ms):.2f}% of wall time)"
        )
        logger.info(
            f"Exported {stats.accepted_count} samples, "
            f"{total_cpu_ms:.2f} ms CPU time over {wall_time_ms:.2f} ms wall time"
        )

        for process, process_ns in _by_descending_time(stats.process_cpu_ns):
            process_ms = _ms(process_ns)
            self._add_comment(
                f"{process}: {process_ms:.2f} ms ({_percent(process_ms, wall_time_ms):.2f}%)"
            )
            for thread, thread_ns in _by_descending_time(stats.thread_cpu_ns[process]):
                thread_ms = _ms(thread_ns)
                self._add_comment(
                    f"  {thread}: {thread_ms:.2f} ms ({_percent(thread_ms, wall_time_ms):.2f}%)"
                )

    def _add_comment(self, text):
        self._profile.comment.append(self._strings.get_id(text))

    def _check_not_finalized(self):
        if self._finalized:
            raise RuntimeError("The profile has already been written")


def _base_name(path):
    # Traces often come from Windows machines.
    return os.path.basename(str(path).replace("\\", "/"))


def _ms(ns):
    return ns / 1e6


def _percent(part, whole):
    return part * 100 / whole


def _by_descending_time(times):
    # sorted() is stable, so ties keep first-seen order.
    return sorted(times.items(), key=lambda item: item[1], reverse=True)
