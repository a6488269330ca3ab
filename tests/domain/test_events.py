"""Payload serialization and decoding, plus the id and clock helpers."""

from datetime import datetime, timezone

import pytest

from mdm_kernel.domain.clock import DeterministicClock
from mdm_kernel.domain.events import (
    PAYLOAD_TYPES,
    ChangeEntry,
    ChangeKind,
    UpdatePayload,
    WorkflowAction,
    decode_payload,
)
from mdm_kernel.domain.ids import (
    FixedGoldenCodeGenerator,
    RandomGoldenCodeGenerator,
    SequentialIdGenerator,
    UUIDGenerator,
)


class TestPayloads:
    def test_every_action_has_a_payload_type(self):
        assert set(PAYLOAD_TYPES) == set(WorkflowAction)

    def test_update_payload_survives_storage(self):
        payload = UpdatePayload(
            changes=(
                ChangeEntry("city", "Riyadh", "Jeddah", ChangeKind.FIELD, "City"),
                ChangeEntry("Contact: Sara", None, "Sara | | | | | ", ChangeKind.CONTACT),
            ),
            updated_by="alice",
        )
        decoded = decode_payload("UPDATE", payload.to_dict())
        assert decoded == payload
        assert decoded.changes[1].kind is ChangeKind.CONTACT

    def test_stored_kind_is_plain_string(self):
        payload = UpdatePayload(changes=(ChangeEntry("city", "a", "b"),))
        assert payload.to_dict()["changes"][0]["kind"] == "field"

    def test_unknown_keys_ignored_on_decode(self):
        decoded = decode_payload(WorkflowAction.UPDATE, {"updated_by": "alice", "legacy": 1})
        assert decoded.updated_by == "alice"

    def test_missing_payload_decodes_to_defaults(self):
        decoded = decode_payload("UPDATE", None)
        assert decoded.changes == ()

    def test_unknown_action_rejected(self):
        with pytest.raises(ValueError):
            decode_payload("TELEPORT", {})


class TestIdGenerators:
    def test_sequential(self):
        gen = SequentialIdGenerator()
        assert [gen.new_id() for _ in range(2)] == ["REQ-0001", "REQ-0002"]

    def test_uuid_ids_are_unique_hex(self):
        gen = UUIDGenerator()
        a, b = gen.new_id(), gen.new_id()
        assert a != b
        assert len(a) == 32

    def test_random_code_shape(self):
        code = RandomGoldenCodeGenerator(prefix="GR-", length=6).new_code()
        assert code.startswith("GR-")
        suffix = code[3:]
        assert len(suffix) == 6
        assert suffix.isalnum() and suffix == suffix.upper()

    def test_fixed_codes_repeat_last(self):
        gen = FixedGoldenCodeGenerator(["GR-A", "GR-B"])
        assert [gen.new_code() for _ in range(3)] == ["GR-A", "GR-B", "GR-B"]

    def test_fixed_codes_required(self):
        with pytest.raises(ValueError):
            FixedGoldenCodeGenerator([])


class TestDeterministicClock:
    def test_fixed_until_advanced(self):
        start = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
        clock = DeterministicClock(start)
        assert clock.now() == clock.now() == start
        assert (clock.tick() - start).total_seconds() == 1
