"""
Doctor Booking Tests

Ledger, calendar and engine tests run against a throwaway SQLite file
through aiosqlite, so transactions and the live-slot unique index are real.

Running Tests:
    # Install with test extras
    pip install -e ".[test]"

    # Run all tests
    pytest tests -v

    # Run one module
    pytest tests/unit/test_booking_ledger.py -v

Test Coverage:
    - Booking, cancellation and rescheduling, including concurrent races
    - Slot computation and doctor availability authoring
    - Dialogue flow, intent matching and detail extraction
    - Session store expiry and doctor lookup
    - Notifications and the HTTP layer
"""
