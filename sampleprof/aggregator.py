from dataclasses import dataclass, field

from sampleprof.config import ProfileConfig
from sampleprof.interning import UNKNOWN, LocationInterner
from sampleprof.sample_dto import CpuSample

ANONYMOUS_THREAD = "anonymous thread"


@dataclass
class AggregationStats:
    """CPU time totals and observed time span of the exported samples."""

    total_cpu_ns: int = 0
    process_cpu_ns: dict[str, int] = field(default_factory=dict)
    thread_cpu_ns: dict[str, dict[str, int]] = field(default_factory=dict)
    start_timestamp: float | None = None
    end_timestamp: float | None = None
    accepted_count: int = 0
    skipped_count: int = 0

    def observe_timestamp(self, timestamp):
        if self.start_timestamp is None or timestamp < self.start_timestamp:
            self.start_timestamp = timestamp
        if self.end_timestamp is None or timestamp > self.end_timestamp:
            self.end_timestamp = timestamp

    def add_cpu_time(self, process_label, thread_label, weight_ns):
        self.process_cpu_ns[process_label] = self.process_cpu_ns.get(process_label, 0) + weight_ns
        threads = self.thread_cpu_ns.setdefault(process_label, {})
        threads[thread_label] = threads.get(thread_label, 0) + weight_ns
        self.total_cpu_ns += weight_ns

    def has_time_span(self) -> bool:
        return (
            self.start_timestamp is not None
            and self.end_timestamp is not None
            and self.start_timestamp < self.end_timestamp
        )

    def wall_time_ms(self) -> float:
        if not self.has_time_span():
            return 0.0
        return (self.end_timestamp - self.start_timestamp) * 1000


class SampleAggregator:
    """Filters incoming samples and turns the accepted ones into pprof samples."""

    def __init__(self, config: ProfileConfig, locations: LocationInterner, samples):
        self._config = config
        self._locations = locations
        self._samples = samples
        self._process_filters = [
            token.replace("/", "\\") for token in sorted(config.process_filter_set)
        ]
        self.stats = AggregationStats()

    def accept(self, sample: CpuSample) -> bool:
        """Adds `sample` to the profile unless a filter excludes it.

        Returns True if the sample was accepted.
        """
        if not self._passes_filters(sample):
            self.stats.skipped_count += 1
            return False

        self.stats.accepted_count += 1
        self.stats.observe_timestamp(sample.timestamp)

        sample_proto = self._samples.add()
        sample_proto.value.append(sample.weight_ns)
        if not sample.stack:
            return True

        process_id = sample.process.id
        process_name = sample.process.image_name or UNKNOWN
        for frame in sample.stack:
            if frame.symbol is not None:
                location_id = self._locations.get_resolved_id(process_id, frame)
            else:
                image_name = frame.image.file_name if frame.image else None
                location_id = self._locations.get_unknown_id(process_id, image_name)
            sample_proto.location_id.append(location_id)

        thread = sample.thread
        thread_label = self._thread_label(sample)
        process_label = self._process_label(sample)
        sample_proto.location_id.append(
            self._locations.get_pseudo_id(
                process_id,
                process_name,
                thread.start_address if thread else None,
                thread_label,
            )
        )
        sample_proto.location_id.append(
            self._locations.get_pseudo_id(
                process_id,
                process_name,
                sample.process.object_address,
                process_label,
            )
        )

        self.stats.add_cpu_time(process_label, thread_label, sample.weight_ns)
        return True

    def _passes_filters(self, sample: CpuSample) -> bool:
        # DPCs and ISRs are not attributable to the interrupted process.
        if sample.is_executing_dpc or sample.is_executing_isr:
            return False

        if sample.timestamp < self._config.time_start or sample.timestamp > self._config.time_end:
            return False

        if not self._config.exports_all_processes:
            image_path = sample.process.image_path or sample.process.image_name or ""
            if not any(token in image_path for token in self._process_filters):
                return False

        return True

    def _thread_label(self, sample: CpuSample) -> str:
        thread = sample.thread
        label = thread.name if thread and thread.name else ANONYMOUS_THREAD
        if self._config.include_process_and_thread_ids:
            thread_id = thread.id if thread and thread.id is not None else 0
            label = f"{label} ({thread_id})"
        return label

    def _process_label(self, sample: CpuSample) -> str:
        process_name = sample.process.image_name or UNKNOWN
        if self._config.include_process_id_in_labels:
            return f"{process_name} ({sample.process.id})"
        return process_name
