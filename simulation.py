from config import settings
from domain import DoctorView, TokenEngine, TokenType

SLOT_TIMES = [("9:00 AM", "10:00 AM"), ("10:00 AM", "11:00 AM"), ("11:00 AM", "12:00 PM")]


def print_doctor(doctor: DoctorView) -> None:
    print("\n" + "═" * 50)
    print("DR. " + doctor.name.upper())
    print("═" * 50)

    for slot in doctor.slots:
        print(
            f"\n{slot.time_range} [{slot.count}/{slot.capacity}] "
            f"{slot.capacity_bar} {slot.status}"
        )
        for i, token in enumerate(slot.tokens, start=1):
            print(f"  {i}. {token}")
        if not slot.tokens:
            print("  (No tokens)")

    if doctor.waiting_list:
        print(f"\n⏳ WAITING LIST: {doctor.waiting_count} patients")
        for i, token in enumerate(doctor.waiting_list, start=1):
            print(f"  {i}. {token}")


def run_simulation() -> TokenEngine:
    """
    Simulate one OPD day with 3 doctors.

    Demonstrates:
    - Every token type, ordered by priority within a slot.
    - Emergency insertion bumping lower-priority patients.
    - Waiting-list overflow once all slots are full.
    - Backfill from the waiting list after a cancellation or no-show.
    - A delayed slot cascading its patients into later slots.
    """
    engine = TokenEngine(id_prefix=settings.token_id_prefix)

    engine.add_doctor("Sharma")
    for start, end in SLOT_TIMES:
        engine.add_slot("Sharma", start, end, capacity=5)

    engine.add_doctor("Patel")
    for start, end in SLOT_TIMES:
        engine.add_slot("Patel", start, end, capacity=4)

    engine.add_doctor("Gupta")
    for start, end in SLOT_TIMES[:2]:
        engine.add_slot("Gupta", start, end, capacity=5)

    print("Doctors created:", ", ".join(d.name for d in engine.get_all_doctors()))

    print("\n▶ Booking tokens from all sources (Dr. Sharma, 9-10 AM)")
    engine.book_token("Sharma", 0, "Priya", TokenType.ONLINE)
    engine.book_token("Sharma", 0, "Raj", TokenType.WALKIN)
    neha = engine.book_token("Sharma", 0, "Neha", TokenType.FOLLOWUP)
    engine.book_token("Sharma", 0, "Amit", TokenType.PAID)
    engine.book_token("Sharma", 0, "Kavita", TokenType.ONLINE)

    print("\n▶ Emergency insertion")
    critical = engine.book_token("Sharma", 0, "Critical1", TokenType.EMERGENCY)
    print("Critical1 placed in slot", engine.locate_token("Sharma", critical.id).slot_index)

    print("\n▶ Filling Dr. Patel's slots")
    engine.book_token("Patel", 0, "Ramesh", TokenType.PAID)
    engine.book_token("Patel", 0, "Suresh", TokenType.FOLLOWUP)
    dinesh = engine.book_token("Patel", 0, "Dinesh", TokenType.WALKIN)
    engine.book_token("Patel", 0, "Mahesh", TokenType.ONLINE)
    engine.book_token("Patel", 0, "Ganesh", TokenType.ONLINE)
    engine.book_token("Patel", 0, "Lokesh", TokenType.ONLINE)

    print("\n▶ Cancellation")
    print("Cancelled Neha:", engine.cancel_token("Sharma", neha.id))

    print("\n▶ No-show")
    print("Dinesh no-show:", engine.mark_no_show("Patel", dinesh.id))

    print("\n▶ Dr. Gupta slot delay")
    engine.book_token("Gupta", 0, "Anita", TokenType.ONLINE)
    engine.book_token("Gupta", 0, "Vijay", TokenType.PAID)
    engine.book_token("Gupta", 0, "Sunita", TokenType.FOLLOWUP)
    print_doctor(engine.delay_slot("Gupta", 0))

    print("\n▶ Edge cases")
    print("Cancel unknown token:", engine.cancel_token("Sharma", "T999"))
    engine.book_token("Gupta", 0, "Emergency2", TokenType.EMERGENCY)
    engine.book_token("Gupta", 0, "Emergency3", TokenType.EMERGENCY)

    print("\n▶ Final state of all doctors")
    for doctor in engine.get_all_doctors():
        print_doctor(doctor)

    return engine


if __name__ == "__main__":
    run_simulation()
