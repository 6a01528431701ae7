"""
Shared fixtures: an in-memory stand-in for libcpdb-frontend.

FakeCpdbLibrary offers the same method surface as cpdb.core.library.
CpdbLibrary, backed by plain Python objects. Its heap tracks every string it
hands out and fails the test on:
    - freeing a string twice
    - freeing a string the library keeps (struct fields, option names)
    - reading a string after it was freed
"""

import json
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from cpdb.core.ffi import RawMedia, RawOption


# Fake heap

class FakeHeap:
    """Address-keyed string store with allocation/free accounting."""

    def __init__(self):
        self._next = 0x1000
        self.strings: Dict[int, bytes] = {}
        self.retained = set()
        self.freed: List[int] = []

    def address(self) -> int:
        self._next += 0x10
        return self._next

    def string(self, value, retained: bool = False) -> int:
        if isinstance(value, str):
            value = value.encode("utf-8")
        address = self.address()
        self.strings[address] = value
        if retained:
            self.retained.add(address)
        return address

    def read(self, address: int) -> bytes:
        if address in self.freed:
            raise AssertionError(f"use after free at {address:#x}")
        return self.strings[address]

    def free(self, address: int) -> None:
        if address in self.retained:
            raise AssertionError(f"freed library-owned string at {address:#x}")
        if address in self.freed:
            raise AssertionError(f"double free at {address:#x}")
        if address not in self.strings:
            raise AssertionError(f"free of unknown address {address:#x}")
        self.freed.append(address)

    @property
    def outstanding(self) -> List[int]:
        """Caller-owned strings not freed yet."""
        return [a for a in self.strings if a not in self.retained and a not in self.freed]


# Fake foreign objects

@dataclass
class FakeOption:
    name: str
    supported: List[str] = field(default_factory=list)
    default: Optional[str] = None
    current: Optional[str] = None
    group: str = "General"


@dataclass
class FakeMedia:
    name: str
    width: int
    length: int
    margins: List[Tuple[int, int, int, int]] = field(default_factory=list)
    size_status: int = 0
    margin_count: Optional[int] = None


@dataclass
class FakePrinter:
    id: str
    name: str
    backend_name: str = "CUPS"
    location: Optional[str] = "Office"
    description: Optional[str] = "Test printer"
    make_and_model: Optional[str] = "Generic PostScript"
    state: Optional[str] = "idle"
    accepting_jobs: bool = True
    options: Dict[str, FakeOption] = field(default_factory=dict)
    media: Dict[str, FakeMedia] = field(default_factory=dict)
    settings: Dict[str, str] = field(default_factory=dict)
    jobs: List[dict] = field(default_factory=list)
    fail_jobs: bool = False
    deleted: bool = False


@dataclass
class FakeFrontend:
    callback: Callable
    connected: bool = False
    printers: List[int] = field(default_factory=list)
    hidden: Dict[str, bool] = field(default_factory=dict)
    refreshes: int = 0
    deleted: bool = False


class FakeCpdbLibrary:
    """In-memory libcpdb-frontend with the CpdbLibrary method surface."""

    def __init__(self):
        self.heap = FakeHeap()
        self.init_calls = 0
        self.missing = set()
        self.fail_new_frontend = False
        self.fail_new_settings = False
        self.default_printer_id: Optional[str] = None
        self.frontends: Dict[int, FakeFrontend] = {}
        self.printers: Dict[int, FakePrinter] = {}
        self.environment: List[int] = []
        self.settings: Dict[int, Dict[str, str]] = {}
        self.deleted_settings: List[int] = []
        self._printer_settings: Dict[int, int] = {}
        self.options_objects: Dict[int, List[int]] = {}
        self.deleted_options: List[int] = []
        self.option_structs: Dict[int, RawOption] = {}
        self.media_structs: Dict[int, RawMedia] = {}
        self._field_cache: Dict[Tuple[int, str], Optional[int]] = {}
        self.calls: List[str] = []

    # helpers for tests

    def add_environment_printer(self, printer: FakePrinter) -> int:
        """A printer the backends will announce on connect()."""
        address = self.heap.address()
        self.printers[address] = printer
        self.environment.append(address)
        return address

    def announce(self, frontend: int, printer: int, code: int) -> None:
        """Invoke the registered printer callback the way the transport would."""
        self.frontends[frontend].callback(frontend, printer, code)
        if code == 1:
            # The library frees the object once the callback returns
            self.printers[printer].deleted = True

    def _retained(self, value: Optional[str]) -> Optional[int]:
        if value is None:
            return None
        return self.heap.string(value, retained=True)

    def _live_printer(self, printer: int) -> FakePrinter:
        fake = self.printers[printer]
        assert not fake.deleted, f"printer {printer:#x} used after deletion"
        return fake

    # lifecycle / strings

    def load(self) -> None:
        pass

    def initialize(self) -> None:
        self.init_calls += 1

    def supports(self, function_name: str) -> bool:
        return function_name not in self.missing

    def read_string(self, address: int) -> bytes:
        return self.heap.read(address)

    def free(self, address: int) -> None:
        self.heap.free(address)

    def version(self) -> Optional[int]:
        return self._retained("2.0.0")

    # frontend

    def make_printer_callback(self, function):
        return function

    def new_frontend(self, callback) -> Optional[int]:
        if self.fail_new_frontend:
            return None
        address = self.heap.address()
        self.frontends[address] = FakeFrontend(callback=callback)
        return address

    def delete_frontend(self, frontend: int) -> None:
        fake = self.frontends[frontend]
        assert not fake.deleted, "frontend deleted twice"
        fake.deleted = True
        self.calls.append("delete_frontend")

    def connect(self, frontend: int) -> None:
        fake = self.frontends[frontend]
        fake.connected = True
        self.calls.append("connect")
        for printer in self.environment:
            if printer not in fake.printers:
                fake.printers.append(printer)
                fake.callback(frontend, printer, 0)

    def disconnect(self, frontend: int) -> None:
        self.frontends[frontend].connected = False
        self.calls.append("disconnect")

    def refresh_printers(self, frontend: int) -> None:
        self.frontends[frontend].refreshes += 1

    def find_printer(self, frontend: int, printer_id: bytes, backend: bytes) -> Optional[int]:
        for address in self.frontends[frontend].printers:
            fake = self.printers[address]
            if fake.id.encode() == printer_id and fake.backend_name.encode() == backend:
                return address
        return None

    def default_printer(self, frontend: int, backend: Optional[bytes] = None) -> Optional[int]:
        for address in self.frontends[frontend].printers:
            fake = self.printers[address]
            if fake.id != self.default_printer_id:
                continue
            if backend is None or fake.backend_name.encode() == backend:
                return address
        return None

    def set_remote_hidden(self, frontend: int, hidden: bool) -> None:
        self.frontends[frontend].hidden["remote"] = hidden

    def set_temporary_hidden(self, frontend: int, hidden: bool) -> None:
        self.frontends[frontend].hidden["temporary"] = hidden

    def add_printer(self, frontend: int, printer: int) -> bool:
        fake = self.printers[printer]
        if self.find_printer(frontend, fake.id.encode(), fake.backend_name.encode()):
            return False
        self.frontends[frontend].printers.append(printer)
        return True

    def delete_printer(self, printer: int) -> None:
        fake = self.printers[printer]
        assert not fake.deleted, "printer deleted twice"
        fake.deleted = True

    # printer

    def printer_field(self, printer: int, field_name: str) -> Optional[int]:
        key = (printer, field_name)
        if key not in self._field_cache:
            self._field_cache[key] = self._retained(getattr(self._live_printer(printer), field_name))
        return self._field_cache[key]

    def printer_accepting_field(self, printer: int) -> bool:
        return self._live_printer(printer).accepting_jobs

    def is_accepting_jobs(self, printer: int) -> bool:
        return self._live_printer(printer).accepting_jobs

    def get_state(self, printer: int) -> Optional[int]:
        state = self._live_printer(printer).state
        return self.heap.string(state) if state is not None else None

    def print_file(self, printer: int, path: bytes) -> Optional[int]:
        return self._print(printer, path, None)

    def print_file_with_title(self, printer: int, path: bytes, title: bytes) -> Optional[int]:
        return self._print(printer, path, title)

    def _print(self, printer: int, path: bytes, title: Optional[bytes]) -> Optional[int]:
        fake = self._live_printer(printer)
        if fake.fail_jobs:
            return None
        fake.jobs.append({"path": path, "title": title, "settings": dict(fake.settings)})
        return self.heap.string(f"{fake.id}-{len(fake.jobs)}")

    def add_setting_to_printer(self, printer: int, name: bytes, value: bytes) -> None:
        self._live_printer(printer).settings[name.decode()] = value.decode()

    def clear_setting_from_printer(self, printer: int, name: bytes) -> bool:
        return self._live_printer(printer).settings.pop(name.decode(), None) is not None

    def printer_settings(self, printer: int) -> Optional[int]:
        fake = self._live_printer(printer)
        address = self._printer_settings.get(printer)
        if address is None:
            address = self._printer_settings[printer] = self.heap.address()
            self.settings[address] = fake.settings
        return address

    def _option_struct(self, option: FakeOption) -> int:
        address = self.heap.address()
        self.option_structs[address] = RawOption(
            name=self._retained(option.name),
            group=self._retained(option.group),
            supported=tuple(self._retained(v) for v in option.supported),
            default_value=self._retained(option.default),
        )
        return address

    def get_all_options(self, printer: int) -> Optional[int]:
        fake = self._live_printer(printer)
        if not fake.options:
            return None
        address = self.heap.address()
        self.options_objects[address] = [self._option_struct(o) for o in fake.options.values()]
        return address

    def get_option(self, printer: int, name: bytes) -> Optional[int]:
        option = self._live_printer(printer).options.get(name.decode())
        return self._option_struct(option) if option else None

    def get_default(self, printer: int, name: bytes) -> Optional[int]:
        option = self._live_printer(printer).options.get(name.decode())
        if option is None or option.default is None:
            return None
        return self.heap.string(option.default)

    def get_current(self, printer: int, name: bytes) -> Optional[int]:
        fake = self._live_printer(printer)
        option = fake.options.get(name.decode())
        if option is None:
            return None
        value = fake.settings.get(option.name, option.current or option.default)
        return self.heap.string(value) if value is not None else None

    def get_media(self, printer: int, media: bytes) -> Optional[int]:
        fake = self._live_printer(printer).media.get(media.decode())
        if fake is None:
            return None
        address = self.heap.address()
        self.media_structs[address] = RawMedia(
            name=self._retained(fake.name),
            width=fake.width,
            length=fake.length,
            margins=tuple(fake.margins),
        )
        return address

    def get_media_size(self, printer: int, media: bytes) -> Tuple[int, int, int]:
        fake = self._live_printer(printer).media.get(media.decode())
        if fake is None:
            return 1, 0, 0
        return fake.size_status, fake.width, fake.length

    def get_media_margins(self, printer: int, media: bytes):
        fake = self._live_printer(printer).media.get(media.decode())
        if fake is None:
            return 0, []
        count = len(fake.margins) if fake.margin_count is None else fake.margin_count
        if count <= 0:
            return count, []
        return count, list(fake.margins[:count])

    def pickle_printer(self, printer: int, path: bytes, frontend: int) -> None:
        fake = self._live_printer(printer)
        data = {"id": fake.id, "name": fake.name, "backend_name": fake.backend_name}
        with open(path.decode(), "w", encoding="utf-8") as f:
            json.dump(data, f)

    def resurrect_printer(self, path: bytes) -> Optional[int]:
        try:
            with open(path.decode(), "r", encoding="utf-8") as f:
                data = json.load(f)
        except ValueError:
            return None
        address = self.heap.address()
        self.printers[address] = FakePrinter(**data)
        return address

    # options and media

    def new_options(self) -> Optional[int]:
        address = self.heap.address()
        self.options_objects[address] = []
        return address

    def delete_options(self, options: int) -> None:
        assert options not in self.deleted_options, "options deleted twice"
        self.deleted_options.append(options)

    def options_entries(self, options: int) -> List[int]:
        assert options not in self.deleted_options, "options used after deletion"
        return list(self.options_objects[options])

    def read_option(self, option: int) -> RawOption:
        return self.option_structs[option]

    def read_media(self, media: int) -> RawMedia:
        return self.media_structs[media]

    # settings

    def _live_settings(self, settings: int) -> Dict[str, str]:
        assert settings not in self.deleted_settings, f"settings {settings:#x} used after deletion"
        return self.settings[settings]

    def new_settings(self) -> Optional[int]:
        if self.fail_new_settings:
            return None
        address = self.heap.address()
        self.settings[address] = {}
        return address

    def copy_settings(self, source: int, dest: int) -> None:
        self._live_settings(dest).update(self._live_settings(source))

    def add_setting(self, settings: int, name: bytes, value: bytes) -> None:
        self._live_settings(settings)[name.decode()] = value.decode()

    def clear_setting(self, settings: int, name: bytes) -> bool:
        return self._live_settings(settings).pop(name.decode(), None) is not None

    def delete_settings(self, settings: int) -> None:
        assert settings not in self.deleted_settings, "settings deleted twice"
        self.deleted_settings.append(settings)

    def save_settings(self, settings: int, path: bytes) -> int:
        with open(path.decode(), "w", encoding="utf-8") as f:
            json.dump(self._live_settings(settings), f)
        return 0

    def read_settings(self, path: bytes) -> Optional[int]:
        try:
            with open(path.decode(), "r", encoding="utf-8") as f:
                data = json.load(f)
        except ValueError:
            return None
        address = self.new_settings()
        self.settings[address] = data
        return address

    def settings_entries(self, settings: int) -> List[Tuple[int, Optional[int]]]:
        return [
            (self._retained(key), self._retained(value))
            for key, value in self._live_settings(settings).items()
        ]


# Fixtures

@pytest.fixture
def fake_library():
    """An empty fake cpdb library."""
    return FakeCpdbLibrary()


@pytest.fixture
def pdf_printer():
    """A printer with options and A4 media."""
    return FakePrinter(
        id="PDF",
        name="PDF",
        backend_name="CUPS",
        make_and_model="Generic CUPS-PDF Printer",
        options={
            "copies": FakeOption("copies", ["1", "2", "3"], default="1"),
            "sides": FakeOption("sides", ["one-sided", "two-sided-long-edge"], default="one-sided"),
            "print-quality": FakeOption("print-quality", ["3", "4", "5"], default=None),
        },
        media={
            "A4": FakeMedia("A4", 21000, 29700, margins=[(10, 10, 5, 5), (0, 0, 0, 0)]),
            "Letter": FakeMedia("Letter", 21590, 27940, margins=[]),
        },
    )


@pytest.fixture
def office_printer():
    """A second printer on another backend."""
    return FakePrinter(id="office-laser", name="Office Laser", backend_name="FILE")


@pytest.fixture
def populated_library(fake_library, pdf_printer, office_printer):
    """Fake library whose environment announces two printers on connect."""
    fake_library.add_environment_printer(pdf_printer)
    fake_library.add_environment_printer(office_printer)
    return fake_library


@pytest.fixture
def frontend(populated_library):
    """A connected session over the populated fake library."""
    from cpdb.services.frontend import Frontend

    session = Frontend.create(populated_library, hide_remote=False, hide_temporary=False)
    session.connect()
    yield session
    session.close()


@pytest.fixture
def printer(frontend):
    """The PDF printer from the connected session."""
    return frontend.list_printers()[0]
