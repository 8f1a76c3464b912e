from backend.services.debounce import InFlightGuard, ScanDebouncer


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_repeated_payload_admitted_once_within_window():
    clock = FakeClock()
    debouncer = ScanDebouncer(5, clock=clock)

    results = []
    for _ in range(30):
        results.append(debouncer.should_process('{"id":"S123"}'))
        clock.advance(0.1)

    assert results.count(True) == 1
    assert results[0] is True
    assert debouncer.pending() == {'{"id":"S123"}'}


def test_payload_admitted_again_after_window():
    clock = FakeClock()
    debouncer = ScanDebouncer(5, clock=clock)

    assert debouncer.should_process("S123") is True
    clock.advance(4.9)
    assert debouncer.should_process("S123") is False
    clock.advance(0.1)
    assert debouncer.should_process("S123") is True


def test_window_is_measured_from_admission_not_last_sighting():
    clock = FakeClock()
    debouncer = ScanDebouncer(2, clock=clock)

    assert debouncer.should_process("S123") is True
    for _ in range(3):
        clock.advance(0.5)
        assert debouncer.should_process("S123") is False
    clock.advance(0.5)
    assert debouncer.should_process("S123") is True


def test_release_readmits_immediately():
    debouncer = ScanDebouncer(5, clock=FakeClock())
    assert debouncer.should_process("S123") is True
    debouncer.release("S123")
    assert debouncer.should_process("S123") is True


def test_distinct_payloads_are_independent():
    debouncer = ScanDebouncer(5, clock=FakeClock())
    assert debouncer.should_process("S1") is True
    assert debouncer.should_process("S2") is True
    assert debouncer.should_process("S1") is False


def test_zero_window_disables_suppression():
    debouncer = ScanDebouncer(0, clock=FakeClock())
    assert all(debouncer.should_process("S123") for _ in range(3))
    assert debouncer.pending() == set()


def test_in_flight_guard_is_single_flight():
    guard = InFlightGuard()
    assert guard.try_acquire() is True
    assert guard.busy is True
    assert guard.try_acquire() is False

    guard.release()
    assert guard.busy is False
    assert guard.try_acquire() is True
    guard.release()
    # Releasing an idle guard is harmless.
    guard.release()
    assert guard.busy is False
