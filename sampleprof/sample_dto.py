from dataclasses import dataclass, field


@dataclass
class Image:
    """Describes a binary image (executable or library) loaded in a process."""

    file_name: str
    path: str | None = None


@dataclass
class StackSymbol:
    """Describes the symbol information resolved for a stack frame."""

    function_name: str | None
    address_range: tuple[int, int] | None = None
    inlined_function_names: list[str] | None = None
    source_file_name: str | None = None
    source_line_number: int | None = None


@dataclass
class StackFrame:
    """Describes one level of a call stack; `symbol` is None if unresolved."""

    address: int | None = None
    symbol: StackSymbol | None = None
    image: Image | None = None


@dataclass
class Process:
    """Describes the process owning a sample."""

    id: int
    image_name: str
    image_path: str | None = None
    object_address: int | None = None


@dataclass
class Thread:
    """Describes the thread a sample was taken on."""

    id: int | None = None
    name: str | None = None
    start_address: int | None = None


@dataclass
class CpuSample:
    """Describes one CPU sample: a weighted, timestamped call stack.

    `timestamp` is in seconds relative to the start of the trace; `weight_ns`
    is the CPU time attributed to the sample, in nanoseconds.
    """

    weight_ns: int
    timestamp: float
    process: Process
    thread: Thread | None = None
    stack: list[StackFrame] = field(default_factory=list)
    is_executing_dpc: bool | None = None
    is_executing_isr: bool | None = None
