import re

import pytest

import sampleprof.profile_proto as pb2
from sampleprof.interning import FunctionInterner, LocationInterner, StringInterner
from sampleprof.sample_dto import Image, StackFrame, StackSymbol

from conftest import resolved_frame


@pytest.fixture
def profile():
    return pb2.Profile()


@pytest.fixture
def strings(profile):
    return StringInterner(profile.string_table)


def _functions(profile, strings, prefix=r"^c:/src/"):
    return FunctionInterner(profile.function, strings, re.compile(prefix, re.IGNORECASE))


def _string(profile, id):
    return profile.string_table[id]


def test_empty_string_is_id_zero(profile, strings):
    assert strings.get_id("") == 0
    assert list(profile.string_table) == [""]


def test_equal_strings_share_an_id(profile, strings):
    a = strings.get_id("chrome.exe")
    b = strings.get_id("dwm.exe")
    assert strings.get_id("".join(["chrome", ".exe"])) == a
    assert (a, b) == (1, 2)
    assert list(profile.string_table) == ["", "chrome.exe", "dwm.exe"]


def test_function_names(profile, strings):
    functions = _functions(profile, strings)
    id = functions.get_id("chrome.dll", "RunLoop::Run")
    function = profile.function[0]
    assert function.id == id == 1
    assert _string(profile, function.name) == "RunLoop::Run"
    assert _string(profile, function.system_name) == "chrome.dll!RunLoop::Run"
    assert _string(profile, function.filename) == "chrome.dll"


def test_function_without_name_is_labelled_by_image(profile, strings):
    functions = _functions(profile, strings)
    functions.get_id("ntdll.dll", None)
    function = profile.function[0]
    assert _string(profile, function.name) == "ntdll.dll!"
    assert _string(profile, function.system_name) == "ntdll.dll!"


def test_function_source_file_is_normalized_and_stripped(profile, strings):
    functions = _functions(profile, strings)
    functions.get_id("chrome.dll", "Foo", "C:\\src\\base\\run_loop.cc")
    functions.get_id("chrome.dll", "Bar", "D:\\other\\file.cc")
    assert _string(profile, profile.function[0].filename) == "base/run_loop.cc"
    assert _string(profile, profile.function[1].filename) == "D:/other/file.cc"


def test_prefix_is_only_stripped_at_the_start(profile, strings):
    functions = _functions(profile, strings, prefix="gen/")
    functions.get_id("chrome.dll", "Foo", "out/gen/foo.cc")
    assert _string(profile, profile.function[0].filename) == "out/gen/foo.cc"


def test_first_function_registration_wins(profile, strings):
    functions = _functions(profile, strings)
    first = functions.get_id("chrome.dll", "Foo", "C:/src/foo.cc")
    second = functions.get_id("chrome.dll", "Foo", "C:/src/other.cc")
    third = functions.get_id("chrome.dll", "Foo")
    assert first == second == third
    assert len(profile.function) == 1
    assert _string(profile, profile.function[0].filename) == "foo.cc"


def test_functions_in_different_images_are_distinct(profile, strings):
    functions = _functions(profile, strings)
    assert functions.get_id("a.dll", "Foo") != functions.get_id("b.dll", "Foo")


def _locations(profile, strings, include_inlined_functions=False):
    return LocationInterner(
        profile.location, _functions(profile, strings), include_inlined_functions
    )


def test_resolved_location(profile, strings):
    locations = _locations(profile, strings)
    frame = resolved_frame(
        "Foo", 0x1234, source_file_name="c:\\src\\foo.cc", source_line_number=42
    )
    id = locations.get_resolved_id(100, frame)
    location = profile.location[0]
    assert location.id == id == 1
    assert len(location.line) == 1
    assert location.line[0].line == 42
    function = profile.function[location.line[0].function_id - 1]
    assert _string(profile, function.name) == "Foo"
    assert _string(profile, function.filename) == "foo.cc"


def test_resolved_location_identity(profile, strings):
    locations = _locations(profile, strings)
    a = locations.get_resolved_id(100, resolved_frame("Foo", 0x1234))
    assert locations.get_resolved_id(100, resolved_frame("Foo", 0x1234)) == a
    assert locations.get_resolved_id(101, resolved_frame("Foo", 0x1234)) != a
    assert locations.get_resolved_id(100, resolved_frame("Foo", 0x1235)) != a
    assert locations.get_resolved_id(100, resolved_frame("Bar", 0x1234)) != a
    assert locations.get_resolved_id(100, resolved_frame("Foo", 0x1234, "x.dll")) != a
    assert len(profile.location) == 5
    assert [l.id for l in profile.location] == [1, 2, 3, 4, 5]


def test_zero_address_differs_from_missing_address(profile, strings):
    locations = _locations(profile, strings)
    a = locations.get_pseudo_id(1, "chrome.exe", 0, "thread")
    b = locations.get_pseudo_id(1, "chrome.exe", None, "thread")
    assert a != b


def test_resolved_location_falls_back_to_symbol_address(profile, strings):
    locations = _locations(profile, strings)
    frame = StackFrame(
        address=None,
        symbol=StackSymbol(function_name="Foo", address_range=(0x1000, 0x1100)),
        image=Image(file_name="chrome.dll"),
    )
    a = locations.get_resolved_id(100, frame)
    assert locations.get_resolved_id(100, resolved_frame("Foo", 0x1000)) == a


def test_inlined_functions_precede_the_frame_function(profile, strings):
    locations = _locations(profile, strings, include_inlined_functions=True)
    frame = resolved_frame(
        "Outer",
        0x1234,
        inlined_function_names=["Deepest", "Middle"],
        source_file_name="c:/src/outer.cc",
        source_line_number=7,
    )
    locations.get_resolved_id(100, frame)
    lines = profile.location[0].line
    names = [
        _string(profile, profile.function[line.function_id - 1].name) for line in lines
    ]
    assert names == ["Deepest", "Middle", "Outer"]
    assert [line.line for line in lines] == [0, 0, 7]
    inlined = profile.function[lines[0].function_id - 1]
    assert _string(profile, inlined.filename) == "chrome.dll"


def test_inlined_functions_are_ignored_unless_enabled(profile, strings):
    locations = _locations(profile, strings)
    frame = resolved_frame("Outer", 0x1234, inlined_function_names=["Inner"])
    locations.get_resolved_id(100, frame)
    assert len(profile.location[0].line) == 1
    assert len(profile.function) == 1


def test_pseudo_location(profile, strings):
    locations = _locations(profile, strings)
    id = locations.get_pseudo_id(100, "chrome.exe", 0xA000, "CrBrowserMain")
    assert locations.get_pseudo_id(100, "chrome.exe", 0xA000, "CrBrowserMain") == id
    location = profile.location[0]
    assert len(location.line) == 1
    assert location.line[0].line == 0
    function = profile.function[location.line[0].function_id - 1]
    assert _string(profile, function.name) == "CrBrowserMain"
    assert _string(profile, function.filename) == "chrome.exe"


def test_unknown_location(profile, strings):
    locations = _locations(profile, strings)
    id = locations.get_unknown_id(100, "foo.dll")
    assert locations.get_unknown_id(100, "foo.dll") == id
    assert locations.get_unknown_id(100, None) != id
    function = profile.function[profile.location[0].line[0].function_id - 1]
    assert _string(profile, function.name) == "<unknown>"
    assert _string(profile, function.filename) == "foo.dll"
    function = profile.function[profile.location[1].line[0].function_id - 1]
    assert _string(profile, function.filename) == "<unknown>"
