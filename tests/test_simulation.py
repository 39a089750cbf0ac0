from config import settings
from simulation import run_simulation


def test_simulated_day(capsys):
    engine = run_simulation()

    out = capsys.readouterr().out
    assert "DR. SHARMA" in out

    doctors = {d.name: d for d in engine.get_all_doctors()}
    sharma, patel, gupta = doctors["Sharma"], doctors["Patel"], doctors["Gupta"]

    # Critical1 took the first seat; Neha's cancellation freed a seat in slot 0.
    assert sharma.slots[0].tokens[0].patient_name == "Critical1"
    assert [t.patient_name for t in sharma.slots[0].tokens] == [
        "Critical1", "Amit", "Raj", "Priya",
    ]
    assert [t.patient_name for t in sharma.slots[1].tokens] == ["Kavita"]

    # Dinesh's no-show frees a seat but nobody is waiting to take it.
    assert patel.waiting_count == 0
    assert [t.patient_name for t in patel.slots[0].tokens] == ["Ramesh", "Suresh", "Mahesh"]
    assert [t.patient_name for t in patel.slots[1].tokens] == ["Ganesh", "Lokesh"]

    # Gupta's delayed slot only holds the late emergencies.
    assert [t.patient_name for t in gupta.slots[0].tokens] == ["Emergency2", "Emergency3"]
    assert [t.patient_name for t in gupta.slots[1].tokens] == ["Vijay", "Sunita", "Anita"]


def test_simulation_uses_configured_id_prefix(monkeypatch, capsys):
    monkeypatch.setattr(settings, "token_id_prefix", "OPD")

    engine = run_simulation()
    capsys.readouterr()

    ids = [t.id for d in engine.get_all_doctors() for s in d.slots for t in s.tokens]
    assert ids
    assert all(token_id.startswith("OPD") for token_id in ids)
