"""Interning tables that back the string, function and location sections of a
pprof profile.

Each interner owns a key -> id map and appends new records to the matching
repeated field of the profile message. Ids are assigned sequentially and never
change once handed out.
"""

from dataclasses import dataclass

import sampleprof.profile_proto as pb2

UNKNOWN = "<unknown>"


class StringInterner:
    """Maps strings to their index in the profile string table."""

    def __init__(self, string_table):
        self._string_table = string_table
        self._ids = {}
        self.get_id("")

    def get_id(self, s: str) -> int:
        id = self._ids.get(s)
        if id is None:
            id = len(self._string_table)
            self._ids[s] = id
            self._string_table.append(s)
        return id


@dataclass(frozen=True)
class FunctionKey:
    image_name: str
    function_name: str | None

    def __str__(self):
        return f"{self.image_name}!{self.function_name or ''}"


class FunctionInterner:
    """Maps (image, function name) pairs to pprof functions."""

    def __init__(self, functions, strings: StringInterner, strip_prefix_regex):
        self._functions = functions
        self._strings = strings
        self._strip_prefix_regex = strip_prefix_regex
        self._ids = {}

    def get_id(self, image_name, function_name, source_file_name=None) -> int:
        """Returns the id of the function, registering it on first use.

        The first registration wins: a later call with the same image and
        function name returns the existing id even if `source_file_name`
        differs.
        """
        key = FunctionKey(image_name, function_name)
        id = self._ids.get(key)
        if id is not None:
            return id

        id = len(self._functions) + 1
        function = self._functions.add()
        function.id = id
        function.name = self._strings.get_id(function_name or str(key))
        function.system_name = self._strings.get_id(str(key))
        function.filename = self._strings.get_id(self._file_name(image_name, source_file_name))
        self._ids[key] = id
        return id

    def _file_name(self, image_name, source_file_name):
        if source_file_name is None:
            return image_name
        file_name = source_file_name.replace("\\", "/")
        match = self._strip_prefix_regex.match(file_name)
        if match:
            file_name = file_name[match.end() :]
        return file_name


@dataclass(frozen=True)
class LocationKey:
    process_id: int
    image: str
    address: int | None
    function_name: str | None


class LocationInterner:
    """Maps stack frames, resolved or synthetic, to pprof locations."""

    def __init__(self, locations, functions: FunctionInterner, include_inlined_functions=False):
        self._locations = locations
        self._functions = functions
        self._include_inlined_functions = include_inlined_functions
        self._ids = {}

    def get_resolved_id(self, process_id, frame) -> int:
        """Returns the location id for a frame carrying symbol information."""
        symbol = frame.symbol
        image_name = frame.image.file_name if frame.image and frame.image.file_name else UNKNOWN
        image = frame.image.path if frame.image and frame.image.path else image_name
        address = frame.address
        if address is None and symbol.address_range:
            address = symbol.address_range[0]

        key = LocationKey(process_id, image, address, symbol.function_name)
        id = self._ids.get(key)
        if id is not None:
            return id

        location = self._new_location(key)
        if self._include_inlined_functions and symbol.inlined_function_names:
            for inlined_function_name in symbol.inlined_function_names:
                line = location.line.add()
                line.function_id = self._functions.get_id(image_name, inlined_function_name)
        line = location.line.add()
        line.function_id = self._functions.get_id(
            image_name, symbol.function_name, symbol.source_file_name
        )
        line.line = symbol.source_line_number or 0
        return location.id

    def get_pseudo_id(self, process_id, image_or_process_name, address, label) -> int:
        """Returns the id of a synthetic location named `label`.

        Used for thread and process frames and for frames without symbols.
        """
        key = LocationKey(process_id, image_or_process_name, address, label)
        id = self._ids.get(key)
        if id is not None:
            return id

        location = self._new_location(key)
        line = location.line.add()
        line.function_id = self._functions.get_id(image_or_process_name, label)
        return location.id

    def get_unknown_id(self, process_id, image_name) -> int:
        """Returns the location standing in for frames of `image_name` without symbols."""
        return self.get_pseudo_id(process_id, image_name or UNKNOWN, None, UNKNOWN)

    def _new_location(self, key) -> pb2.Location:
        location = self._locations.add()
        location.id = len(self._locations)
        self._ids[key] = location.id
        return location
