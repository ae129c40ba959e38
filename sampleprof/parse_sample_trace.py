import json

import sampleprof.sample_dto as dto


def _lines_in_file(filename):
    with open(filename, "r", encoding="utf-8") as file:
        for line_number, line in enumerate(file, start=1):
            yield line_number, line.strip()


def _content_lines(lines):
    for line_number, line in lines:
        if line == "":
            continue
        if line.startswith("#"):
            continue
        yield line_number, line


def _json_objects(lines):
    for line_number, line in lines:
        try:
            obj = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"Line {line_number}: invalid JSON: {e}") from e
        if not isinstance(obj, dict):
            raise ValueError(f"Line {line_number}: expected a JSON object, got: {line}")
        yield line_number, obj


def _parse_image(obj):
    if obj is None:
        return None
    return dto.Image(file_name=obj["file_name"], path=obj.get("path"))


def _parse_symbol(obj):
    if obj is None:
        return None
    address_range = obj.get("address_range")
    return dto.StackSymbol(
        function_name=obj.get("function_name"),
        address_range=tuple(address_range) if address_range else None,
        inlined_function_names=obj.get("inlined_function_names"),
        source_file_name=obj.get("source_file_name"),
        source_line_number=obj.get("source_line_number"),
    )


def _parse_frame(obj):
    return dto.StackFrame(
        address=obj.get("address"),
        symbol=_parse_symbol(obj.get("symbol")),
        image=_parse_image(obj.get("image")),
    )


def _parse_process(obj):
    return dto.Process(
        id=obj["id"],
        image_name=obj["image_name"],
        image_path=obj.get("image_path"),
        object_address=obj.get("object_address"),
    )


def _parse_thread(obj):
    if obj is None:
        return None
    return dto.Thread(
        id=obj.get("id"), name=obj.get("name"), start_address=obj.get("start_address")
    )


def _parse_sample(obj):
    return dto.CpuSample(
        weight_ns=int(obj["weight_ns"]),
        timestamp=float(obj["timestamp"]),
        process=_parse_process(obj["process"]),
        thread=_parse_thread(obj.get("thread")),
        stack=[_parse_frame(frame) for frame in obj.get("stack") or []],
        is_executing_dpc=obj.get("is_executing_dpc"),
        is_executing_isr=obj.get("is_executing_isr"),
    )


def _objects_to_samples(objects):
    for line_number, obj in objects:
        try:
            sample = _parse_sample(obj)
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Line {line_number}: invalid sample {obj}: {e!r}") from e
        yield sample


def parse_sample_trace(filename):
    """Lazily reads symbolized CPU samples from a JSON-lines file."""
    r = _lines_in_file(filename)
    r = _content_lines(r)
    r = _json_objects(r)
    r = _objects_to_samples(r)
    return r
