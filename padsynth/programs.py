"""MIDI bank/program database with deferred program loading."""

from __future__ import annotations

from collections.abc import Callable, Hashable
from dataclasses import dataclass, field

from .sched import SchedType, Scheduled

Loader = Callable[[Hashable, str], None]


@dataclass(eq=False)
class Prog:
    """A program: an id and a name (the preset it loads)."""

    id: int
    name: str


@dataclass(eq=False)
class Bank(Prog):
    """A bank of programs keyed by program id."""

    _progs: dict[int, Prog] = field(default_factory=dict, init=False, repr=False)

    @property
    def progs(self) -> dict[int, Prog]:
        """Programs ordered by id."""
        return dict(sorted(self._progs.items()))

    def find_prog(self, prog_id: int) -> Prog | None:
        return self._progs.get(prog_id)

    def add_prog(self, prog_id: int, prog_name: str) -> Prog:
        """Add a program, or rename it if the id already exists."""
        prog = self.find_prog(prog_id)
        if prog is not None:
            prog.name = prog_name
        else:
            prog = Prog(prog_id, prog_name)
            self._progs[prog_id] = prog
        return prog

    def remove_prog(self, prog_id: int) -> None:
        self._progs.pop(prog_id, None)

    def clear_progs(self) -> None:
        self._progs.clear()


class _ProgramSched(Scheduled):
    """Defers program loading to the worker thread."""

    def __init__(self, programs: Programs) -> None:
        super().__init__(programs.instance, SchedType.PROGRAMS)
        self._programs = programs
        self._bank_id = 0
        self._prog_id = 0

    def select_program(self, bank_id: int, prog_id: int) -> None:
        if self._bank_id != bank_id or self._prog_id != prog_id:
            self._bank_id = bank_id
            self._prog_id = prog_id
            self.schedule()

    def process(self, sid: int) -> None:
        self._programs.process_program(self.instance, self._bank_id, self._prog_id)


class Programs:
    """Bank/program database; selecting a program loads it in the background."""

    def __init__(self, instance: Hashable, loader: Loader | None = None) -> None:
        self.enabled = False
        self._instance = instance
        self._loader = loader
        self._bank_msb = 0
        self._bank_lsb = 0
        self._bank: Bank | None = None
        self._prog: Prog | None = None
        self._banks: dict[int, Bank] = {}
        self._sched = _ProgramSched(self)

    @property
    def instance(self) -> Hashable:
        return self._instance

    @property
    def banks(self) -> dict[int, Bank]:
        """Banks ordered by id."""
        return dict(sorted(self._banks.items()))

    @property
    def current_bank(self) -> Bank | None:
        return self._bank

    @property
    def current_prog(self) -> Prog | None:
        return self._prog

    # bank managers

    def find_bank(self, bank_id: int) -> Bank | None:
        return self._banks.get(bank_id)

    def add_bank(self, bank_id: int, bank_name: str) -> Bank:
        """Add a bank, or rename it if the id already exists."""
        bank = self.find_bank(bank_id)
        if bank is not None:
            bank.name = bank_name
        else:
            bank = Bank(bank_id, bank_name)
            self._banks[bank_id] = bank
        return bank

    def remove_bank(self, bank_id: int) -> None:
        self._banks.pop(bank_id, None)

    def clear_banks(self) -> None:
        """Drop every bank and forget the current selection."""
        self._bank_msb = 0
        self._bank_lsb = 0
        self._bank = None
        self._prog = None
        self._banks.clear()

    # current bank/program

    def bank_select_msb(self, bank_msb: int) -> None:
        self._bank_msb = 0x80 | (bank_msb & 0x7F)

    def bank_select_lsb(self, bank_lsb: int) -> None:
        self._bank_lsb = 0x80 | (bank_lsb & 0x7F)

    def bank_select(self, bank_id: int) -> None:
        self.bank_select_msb(bank_id >> 7)
        self.bank_select_lsb(bank_id)

    def current_bank_id(self) -> int:
        """Bank id built from the selected MSB and LSB bytes."""
        bank_id = 0
        if self._bank_msb & 0x80:
            bank_id = self._bank_msb & 0x7F
        if self._bank_lsb & 0x80:
            bank_id = ((bank_id << 7) | (self._bank_lsb & 0x7F)) & 0xFFFF
        return bank_id

    def prog_change(self, prog_id: int) -> None:
        self.select_program(self.current_bank_id(), prog_id)

    def select_program(self, bank_id: int, prog_id: int) -> None:
        """Schedule loading of a program unless disabled or already current."""
        if not self.enabled:
            return
        if (
            self._bank is not None
            and self._bank.id == bank_id
            and self._prog is not None
            and self._prog.id == prog_id
        ):
            return
        self._sched.select_program(bank_id, prog_id)

    def process_program(self, instance: Hashable, bank_id: int, prog_id: int) -> None:
        """Make the program current and load its preset through the loader."""
        self._bank = self.find_bank(bank_id)
        self._prog = self._bank.find_prog(prog_id) if self._bank is not None else None
        if self._prog is not None and self._loader is not None:
            self._loader(instance, self._prog.name)

    def close(self) -> None:
        """Drop all banks and release the background job."""
        self.clear_banks()
        self._sched.close()

    def __enter__(self) -> Programs:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()