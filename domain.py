from __future__ import annotations

import bisect
import dataclasses
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Deque, Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)


class TokenType(str, Enum):
    EMERGENCY = "EMERGENCY"
    PAID = "PAID"
    FOLLOWUP = "FOLLOWUP"
    WALKIN = "WALKIN"
    ONLINE = "ONLINE"


# Lower rank = higher priority.
PRIORITY_ORDER = {
    TokenType.EMERGENCY: 0,
    TokenType.PAID: 1,
    TokenType.FOLLOWUP: 2,
    TokenType.WALKIN: 3,
    TokenType.ONLINE: 4,
}

TOKEN_ICONS = {
    TokenType.EMERGENCY: "⚡",
    TokenType.PAID: "💎",
    TokenType.FOLLOWUP: "🔄",
    TokenType.WALKIN: "🚶",
    TokenType.ONLINE: "💻",
}


class AllocationError(ValueError):
    """Base class for recoverable engine failures."""


class DoctorNotFound(AllocationError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Doctor {name} not found")
        self.name = name


class DoctorAlreadyExists(AllocationError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Doctor {name} already registered")
        self.name = name


class InvalidSlotIndex(AllocationError):
    def __init__(self, index: int, slot_count: int) -> None:
        super().__init__(f"Invalid slot index {index} (doctor has {slot_count} slots)")
        self.index = index


class InvalidCapacity(AllocationError):
    def __init__(self, capacity: int) -> None:
        super().__init__(f"Slot capacity must be positive, got {capacity}")
        self.capacity = capacity


class TokenNotFound(AllocationError):
    def __init__(self, token_id: str) -> None:
        super().__init__(f"Token {token_id} not found")
        self.token_id = token_id


@dataclass
class Token:
    id: str
    seq: int
    patient_name: str
    type: TokenType
    created_at: datetime = field(default_factory=datetime.now)
    allocated_at: Optional[datetime] = None

    @property
    def priority(self) -> int:
        return PRIORITY_ORDER[self.type]

    @property
    def icon(self) -> str:
        return TOKEN_ICONS[self.type]

    def mark_allocated(self) -> None:
        # Only the first placement counts; later bumps keep the original stamp.
        if self.allocated_at is None:
            self.allocated_at = datetime.now()

    def __str__(self) -> str:
        return f"{self.id} - {self.patient_name:<12} [{self.type.value:<9}] {self.icon}"


def _sort_key(token: Token) -> Tuple[int, int]:
    return (token.priority, token.seq)


class TokenIdGenerator:
    """Single monotonic source of token ids, shared by every doctor."""

    def __init__(self, prefix: str = "T") -> None:
        self.prefix = prefix
        self._lock = threading.Lock()
        self._last = 0

    def next(self) -> Tuple[str, int]:
        with self._lock:
            self._last += 1
            seq = self._last
        return f"{self.prefix}{seq:03d}", seq

    def reset(self) -> None:
        with self._lock:
            self._last = 0


@dataclass
class Slot:
    start: str
    end: str
    capacity: int
    tokens: List[Token] = field(default_factory=list)

    @property
    def time_range(self) -> str:
        return f"{self.start} - {self.end}"

    def count(self) -> int:
        return len(self.tokens)

    def is_full(self) -> bool:
        return len(self.tokens) >= self.capacity

    def is_empty(self) -> bool:
        return not self.tokens

    def insert(self, token: Token) -> None:
        bisect.insort(self.tokens, token, key=_sort_key)

    def remove(self, token: Token) -> None:
        self.tokens.remove(token)

    def remove_by_id(self, token_id: str) -> Token:
        for i, token in enumerate(self.tokens):
            if token.id == token_id:
                return self.tokens.pop(i)
        raise TokenNotFound(token_id)

    def contains(self, token_id: str) -> bool:
        return any(t.id == token_id for t in self.tokens)

    def lowest_priority_holder(self) -> Optional[Token]:
        if not self.tokens:
            return None
        return self.tokens[-1]

    def drain(self) -> List[Token]:
        drained, self.tokens = self.tokens, []
        return drained


class WaitingList:
    """FIFO overflow queue; order is arrival order, not priority."""

    def __init__(self) -> None:
        self._queue: Deque[Token] = deque()

    def __len__(self) -> int:
        return len(self._queue)

    def __iter__(self) -> Iterator[Token]:
        return iter(self._queue)

    def append(self, token: Token) -> None:
        self._queue.append(token)

    def pop_head(self) -> Optional[Token]:
        if not self._queue:
            return None
        return self._queue.popleft()

    def remove_by_id(self, token_id: str) -> Optional[Token]:
        for token in self._queue:
            if token.id == token_id:
                self._queue.remove(token)
                return token
        return None


@dataclass
class Doctor:
    name: str
    slots: List[Slot] = field(default_factory=list)
    waiting_list: WaitingList = field(default_factory=WaitingList)
    lock: threading.RLock = field(
        default_factory=threading.RLock, repr=False, compare=False
    )

    def slot_at(self, index: int) -> Slot:
        if index < 0 or index >= len(self.slots):
            raise InvalidSlotIndex(index, len(self.slots))
        return self.slots[index]

    def find_slot_index(self, token_id: str) -> Optional[int]:
        for index, slot in enumerate(self.slots):
            if slot.contains(token_id):
                return index
        return None


@dataclass(frozen=True)
class SlotView:
    index: int
    start: str
    end: str
    capacity: int
    tokens: Tuple[Token, ...]

    @property
    def time_range(self) -> str:
        return f"{self.start} - {self.end}"

    @property
    def count(self) -> int:
        return len(self.tokens)

    @property
    def status(self) -> str:
        if self.count >= self.capacity:
            return "FULL"
        if not self.tokens:
            return "EMPTY"
        return f"{self.count}/{self.capacity}"

    @property
    def capacity_bar(self) -> str:
        filled = int(self.count / self.capacity * 12)
        return "█" * filled + "░" * (12 - filled)


@dataclass(frozen=True)
class DoctorView:
    name: str
    slots: Tuple[SlotView, ...]
    waiting_list: Tuple[Token, ...]

    @property
    def waiting_count(self) -> int:
        return len(self.waiting_list)


@dataclass(frozen=True)
class TokenLocation:
    token: Token
    slot_index: Optional[int] = None
    waiting_position: Optional[int] = None

    @property
    def waitlisted(self) -> bool:
        return self.waiting_position is not None


def _copy_token(token: Token) -> Token:
    return dataclasses.replace(token)


def _slot_view(index: int, slot: Slot) -> SlotView:
    return SlotView(
        index=index,
        start=slot.start,
        end=slot.end,
        capacity=slot.capacity,
        tokens=tuple(_copy_token(t) for t in slot.tokens),
    )


def _doctor_view(doctor: Doctor) -> DoctorView:
    with doctor.lock:
        return DoctorView(
            name=doctor.name,
            slots=tuple(_slot_view(i, s) for i, s in enumerate(doctor.slots)),
            waiting_list=tuple(_copy_token(t) for t in doctor.waiting_list),
        )


def _locate(doctor: Doctor, token_id: str) -> Optional[TokenLocation]:
    # Caller holds doctor.lock.
    for index, slot in enumerate(doctor.slots):
        for token in slot.tokens:
            if token.id == token_id:
                return TokenLocation(token=_copy_token(token), slot_index=index)
    for position, token in enumerate(doctor.waiting_list):
        if token.id == token_id:
            return TokenLocation(token=_copy_token(token), waiting_position=position)
    return None


class Registry:
    """Doctors by name, plus the token id source they all share."""

    def __init__(self, id_prefix: str = "T") -> None:
        self.doctors: Dict[str, Doctor] = {}
        self.ids = TokenIdGenerator(id_prefix)
        self._lock = threading.Lock()

    def add(self, name: str) -> Doctor:
        with self._lock:
            if name in self.doctors:
                raise DoctorAlreadyExists(name)
            doctor = Doctor(name=name)
            self.doctors[name] = doctor
            return doctor

    def get(self, name: str) -> Doctor:
        with self._lock:
            doctor = self.doctors.get(name)
        if doctor is None:
            raise DoctorNotFound(name)
        return doctor

    def all(self) -> List[Doctor]:
        with self._lock:
            return list(self.doctors.values())

    def reset(self) -> None:
        with self._lock:
            self.doctors.clear()
        self.ids.reset()


class TokenEngine:
    """
    In-memory token allocation engine.

    Responsibilities:
    - Keeps each slot within capacity, ordered by priority then arrival.
    - On a full slot, bumps the lowest holder if the newcomer strictly
      outranks it; the loser cascades into later slots, then the waiting list.
    - Backfills freed seats from the waiting list on cancellation / no-show.
    - Re-cascades every occupant of a delayed slot.

    Mutations on one doctor are serialised by that doctor's lock.
    """

    def __init__(self, id_prefix: str = "T") -> None:
        self.registry = Registry(id_prefix)

    def reset(self) -> None:
        self.registry.reset()

    def add_doctor(self, name: str) -> DoctorView:
        doctor = self.registry.add(name)
        logger.info("Registered doctor %s", name)
        return _doctor_view(doctor)

    def add_slot(self, doctor_name: str, start: str, end: str, capacity: int) -> SlotView:
        doctor = self.registry.get(doctor_name)
        if capacity <= 0:
            raise InvalidCapacity(capacity)
        with doctor.lock:
            slot = Slot(start=start, end=end, capacity=capacity)
            doctor.slots.append(slot)
            index = len(doctor.slots) - 1
            logger.info(
                "Added slot %d (%s, capacity %d) for Dr. %s",
                index, slot.time_range, capacity, doctor_name,
            )
            return _slot_view(index, slot)

    def get_doctor(self, name: str) -> Optional[DoctorView]:
        try:
            doctor = self.registry.get(name)
        except DoctorNotFound:
            return None
        return _doctor_view(doctor)

    def get_all_doctors(self) -> List[DoctorView]:
        return [_doctor_view(d) for d in self.registry.all()]

    def book_token(
        self,
        doctor_name: str,
        slot_index: int,
        patient_name: str,
        token_type: TokenType,
    ) -> Token:
        return self.place_token(doctor_name, slot_index, patient_name, token_type).token

    def place_token(
        self,
        doctor_name: str,
        slot_index: int,
        patient_name: str,
        token_type: TokenType,
    ) -> TokenLocation:
        """Book a token and report where it settled, both under the doctor lock."""
        doctor = self.registry.get(doctor_name)
        with doctor.lock:
            doctor.slot_at(slot_index)

            token_id, seq = self.registry.ids.next()
            token = Token(
                id=token_id,
                seq=seq,
                patient_name=patient_name,
                type=token_type,
            )
            logger.info(
                "Booking %s token %s for %s with Dr. %s at slot %d",
                token_type.value, token.id, patient_name, doctor_name, slot_index,
            )
            self._allocate(doctor, slot_index, token)
            return _locate(doctor, token.id)

    def _allocate(self, doctor: Doctor, slot_index: int, token: Token) -> None:
        """Place ``token`` at or after ``slot_index``, bumping as needed.

        Each step either settles the token in hand or swaps it for the
        evicted holder, and always advances one slot, so the walk ends
        within ``len(doctor.slots) + 1`` steps.
        """
        while slot_index < len(doctor.slots):
            slot = doctor.slots[slot_index]

            if not slot.is_full():
                slot.insert(token)
                token.mark_allocated()
                logger.debug("%s allocated to %s", token.id, slot.time_range)
                return

            lowest = slot.lowest_priority_holder()
            if token.priority < lowest.priority:
                slot.remove(lowest)
                slot.insert(token)
                token.mark_allocated()
                logger.info(
                    "%s (%s) bumped from %s by %s (%s)",
                    lowest.id, lowest.type.value, slot.time_range,
                    token.id, token.type.value,
                )
                token = lowest
            else:
                logger.debug(
                    "%s moves past full slot %s", token.id, slot.time_range
                )
            slot_index += 1

        doctor.waiting_list.append(token)
        logger.info(
            "%s added to Dr. %s waiting list (%d waiting)",
            token.id, doctor.name, len(doctor.waiting_list),
        )

    def _backfill(self, doctor: Doctor, slot: Slot) -> Optional[Token]:
        if slot.is_full():
            return None
        promoted = doctor.waiting_list.pop_head()
        if promoted is None:
            return None
        slot.insert(promoted)
        promoted.mark_allocated()
        logger.info(
            "%s (%s) moved from waiting list to %s",
            promoted.id, promoted.patient_name, slot.time_range,
        )
        return promoted

    def _release_from_slot(self, doctor: Doctor, token_id: str, reason: str) -> bool:
        index = doctor.find_slot_index(token_id)
        if index is None:
            logger.warning("Token %s not found for Dr. %s", token_id, doctor.name)
            return False
        slot = doctor.slots[index]
        removed = slot.remove_by_id(token_id)
        logger.info(
            "Token %s (%s) %s from %s",
            removed.id, removed.patient_name, reason, slot.time_range,
        )
        self._backfill(doctor, slot)
        return True

    def cancel_token(self, doctor_name: str, token_id: str) -> bool:
        doctor = self.registry.get(doctor_name)
        with doctor.lock:
            if doctor.waiting_list.remove_by_id(token_id) is not None:
                logger.info("Token %s removed from waiting list", token_id)
                return True
            return self._release_from_slot(doctor, token_id, "cancelled")

    def mark_no_show(self, doctor_name: str, token_id: str) -> bool:
        doctor = self.registry.get(doctor_name)
        with doctor.lock:
            return self._release_from_slot(doctor, token_id, "marked as no-show")

    def delay_slot(self, doctor_name: str, slot_index: int) -> DoctorView:
        doctor = self.registry.get(doctor_name)
        with doctor.lock:
            slot = doctor.slot_at(slot_index)
            moving = slot.drain()
            logger.info(
                "Delaying %s for Dr. %s, shifting %d tokens",
                slot.time_range, doctor_name, len(moving),
            )
            for token in moving:
                self._allocate(doctor, slot_index + 1, token)
            return _doctor_view(doctor)

    def locate_token(self, doctor_name: str, token_id: str) -> Optional[TokenLocation]:
        doctor = self.registry.get(doctor_name)
        with doctor.lock:
            return _locate(doctor, token_id)
