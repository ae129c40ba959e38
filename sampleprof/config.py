import math
import re
from dataclasses import dataclass, field

DEFAULT_STRIP_SOURCE_FILE_NAME_PREFIX = r"^c:/b/s/w/ir/cache/builder/"

# Process filter token meaning "export every process".
ALL_PROCESSES = "*"


@dataclass(frozen=True)
class ProfileConfig:
    """The resolved options controlling how samples are exported."""

    include_inlined_functions: bool = False
    include_process_ids: bool = False
    include_process_and_thread_ids: bool = False
    strip_source_file_name_prefix: str = DEFAULT_STRIP_SOURCE_FILE_NAME_PREFIX
    time_start: float = 0
    time_end: float = math.inf
    process_filter_set: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self):
        try:
            regex = re.compile(self.strip_source_file_name_prefix, re.IGNORECASE)
        except re.error as e:
            raise ValueError(
                f"Invalid source file name prefix pattern "
                f"{self.strip_source_file_name_prefix!r}: {e}"
            ) from e
        # Frozen dataclass; bypass __setattr__ to cache the compiled pattern.
        object.__setattr__(self, "_strip_prefix_regex", regex)

        if self.time_start < 0:
            raise ValueError(f"time_start must not be negative, got {self.time_start}")
        if self.time_start > self.time_end:
            raise ValueError(
                f"time_start ({self.time_start}) is after time_end ({self.time_end})"
            )
        object.__setattr__(self, "process_filter_set", frozenset(self.process_filter_set))

    @property
    def strip_prefix_regex(self) -> re.Pattern:
        return self._strip_prefix_regex

    @property
    def include_process_id_in_labels(self) -> bool:
        return self.include_process_ids or self.include_process_and_thread_ids

    @property
    def exports_all_processes(self) -> bool:
        """True if the process filter lets every sample through."""
        return not self.process_filter_set or ALL_PROCESSES in self.process_filter_set


def parse_process_filter(text):
    """Parses a comma-separated process filter, e.g. "chrome.exe,dwm.exe"."""
    if text is None:
        return frozenset()
    return frozenset(item.strip() for item in text.split(",") if item.strip())
