"""
Test suite for audit module

Tests hash-chained audit trail, tamper detection and integrity
verification of the loan event log.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

from loan_ledger.audit import AuditEvent, AuditEventType, AuditTrail
from loan_ledger.storage import InMemoryStorage, SQLiteStorage


class TestAuditEvent:
    """Test AuditEvent functionality"""

    def make_event(self, **overrides) -> AuditEvent:
        now = datetime.now(timezone.utc)
        values = dict(
            id="AUDIT001",
            created_at=now,
            updated_at=now,
            event_type=AuditEventType.LOAN_CREATED,
            entity_type="loan",
            entity_id="LOAN001",
            previous_hash="",
            current_hash="",
            metadata={"principal": "1000.00"},
            user_id="USER001"
        )
        values.update(overrides)
        return AuditEvent(**values)

    def test_metadata_serialization(self):
        """Decimal, date and enum metadata is reduced to JSON values"""
        event = self.make_event(metadata={
            "amount": Decimal('1234.56'),
            "payment_date": date(2025, 2, 1),
            "event": AuditEventType.LOAN_PAID_OFF,
            "nested": {"values": [Decimal('1.1')]}
        })

        assert event.metadata["amount"] == "1234.56"
        assert event.metadata["payment_date"] == "2025-02-01"
        assert event.metadata["event"] == "loan_paid_off"
        assert event.metadata["nested"]["values"] == ["1.1"]

    def test_hash_verification(self):
        """Test hash verification and tampering"""
        event = self.make_event()
        event.current_hash = event.calculate_hash()

        assert len(event.current_hash) == 64
        assert event.verify_hash()

        event.metadata["principal"] = "999999.00"
        assert not event.verify_hash()

    def test_round_trip(self):
        event = self.make_event()
        event.current_hash = event.calculate_hash()

        restored = AuditEvent.from_dict(event.to_dict())

        assert restored.event_type == AuditEventType.LOAN_CREATED
        assert restored.verify_hash()


class TestAuditTrail:
    """Test AuditTrail functionality"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage()
        self.audit_trail = AuditTrail(self.storage)

    def test_events_are_chained(self):
        """Each event links to the hash of the one before it"""
        first = self.audit_trail.log_event(AuditEventType.LOAN_CREATED, "loan", "L1", {"a": 1})
        second = self.audit_trail.log_event(AuditEventType.LOAN_PAYMENT_APPLIED, "loan", "L1", {"a": 2})
        third = self.audit_trail.log_event(AuditEventType.LOAN_CREATED, "loan", "L2")

        assert first.previous_hash == ""
        assert second.previous_hash == first.current_hash
        assert third.previous_hash == second.current_hash
        assert first.created_at < second.created_at < third.created_at

    def test_get_events_for_entity(self):
        self.audit_trail.log_event(AuditEventType.LOAN_CREATED, "loan", "L1")
        self.audit_trail.log_event(AuditEventType.LOAN_CREATED, "loan", "L2")
        self.audit_trail.log_event(AuditEventType.LOAN_REVISED, "loan", "L1")

        events = self.audit_trail.get_events_for_entity("loan", "L1")

        assert [e.event_type for e in events] == [
            AuditEventType.LOAN_CREATED, AuditEventType.LOAN_REVISED
        ]

    def test_verify_integrity_clean(self):
        for _ in range(5):
            self.audit_trail.log_event(AuditEventType.LOAN_PAYMENT_APPLIED, "loan", "L1")

        result = self.audit_trail.verify_integrity()

        assert result['valid']
        assert result['total_events'] == 5
        assert result['hash_errors'] == []
        assert result['chain_breaks'] == []

    def test_verify_integrity_detects_tampering(self):
        """Editing a stored event breaks its hash"""
        self.audit_trail.log_event(AuditEventType.LOAN_CREATED, "loan", "L1", {"principal": "100.00"})
        event = self.audit_trail.log_event(
            AuditEventType.LOAN_PAYMENT_APPLIED, "loan", "L1", {"amount": "10.00"}
        )

        data = self.storage.load("audit_events", event.id)
        data['metadata']['amount'] = "10000.00"
        self.storage.save("audit_events", event.id, data)

        result = self.audit_trail.verify_integrity()
        assert not result['valid']
        assert result['hash_errors'] == [{'event_id': event.id, 'position': 1}]

    def test_verify_integrity_detects_deletion(self):
        """Removing an event from the middle breaks the chain"""
        self.audit_trail.log_event(AuditEventType.LOAN_CREATED, "loan", "L1")
        middle = self.audit_trail.log_event(AuditEventType.LOAN_PAYMENT_APPLIED, "loan", "L1")
        last = self.audit_trail.log_event(AuditEventType.LOAN_PAID_OFF, "loan", "L1")

        # Copy the chain without the middle event
        pruned = InMemoryStorage()
        for data in self.storage.load_all("audit_events"):
            if data['id'] != middle.id:
                pruned.save("audit_events", data['id'], data)

        result = AuditTrail(pruned).verify_integrity()
        assert not result['valid']
        assert result['chain_breaks'] == [{'event_id': last.id, 'position': 1}]

    def test_new_trail_continues_chain(self, tmp_path):
        """A trail opened on existing storage appends to the stored chain"""
        storage = SQLiteStorage(tmp_path / "audit.db")
        first = AuditTrail(storage).log_event(AuditEventType.LOAN_CREATED, "loan", "L1")

        second = AuditTrail(storage).log_event(AuditEventType.LOAN_CLOSED, "loan", "L1")

        assert second.previous_hash == first.current_hash
        assert AuditTrail(storage).verify_integrity()['valid']
        storage.close()
