import pytest

from sampleprof.sample_dto import CpuSample, Image, Process, StackFrame, StackSymbol, Thread


def resolved_frame(function_name, address, image="chrome.dll", **symbol_args):
    return StackFrame(
        address=address,
        symbol=StackSymbol(function_name=function_name, **symbol_args),
        image=Image(file_name=image),
    )


@pytest.fixture
def make_sample():
    """Builds a CpuSample from a process image name and a few keyword overrides."""

    def _make_sample(
        image_name="chrome.exe",
        weight_ms=1,
        timestamp=1.0,
        pid=100,
        image_path=None,
        thread_name="CrBrowserMain",
        tid=200,
        stack=None,
        **kwargs,
    ):
        if stack is None:
            stack = [resolved_frame("main", 0x1000)]
        return CpuSample(
            weight_ns=int(weight_ms * 1_000_000),
            timestamp=timestamp,
            process=Process(
                id=pid, image_name=image_name, image_path=image_path, object_address=0xF000
            ),
            thread=Thread(id=tid, name=thread_name, start_address=0xA000),
            stack=stack,
            **kwargs,
        )

    return _make_sample
