import pytest
from pydantic import ValidationError

from app.services.census.audit import AuditAction, AuditRecorder
from app.services.census.errors import AuditAppendError
from app.services.census.types import Document


def test_record_appends_entry(now):
    document = Document()
    recorder = AuditRecorder(document, user="nurse.kim", clock=lambda: now)
    entry = recorder.record(AuditAction.census_import, "  Census imported: 3 residents ", "census")

    assert document.audit_log == [entry]
    assert recorder.recorded == [entry]
    assert entry.action == "census_import"
    assert entry.details == "Census imported: 3 residents"
    assert entry.timestamp == now
    assert entry.user == "nurse.kim"
    assert len(entry.id) == 32


def test_record_accepts_action_strings_and_keeps_order(now):
    document = Document()
    recorder = AuditRecorder(document, clock=lambda: now)
    recorder.record("abx_discharge", "first", "abt")
    recorder.record("ip_discharge", "second", "ip")
    assert [entry.details for entry in document.audit_log] == ["first", "second"]


@pytest.mark.parametrize(
    "action, details, entity_type",
    [
        ("drop_table", "details", "census"),
        ("census_import", "   ", "census"),
        ("census_import", "details", ""),
    ],
)
def test_record_rejects_incomplete_entries(action, details, entity_type):
    document = Document()
    with pytest.raises(AuditAppendError):
        AuditRecorder(document).record(action, details, entity_type)
    assert document.audit_log == []


def test_audit_entries_are_immutable(now):
    entry = AuditRecorder(Document(), clock=lambda: now).record("census_import", "x", "census")
    with pytest.raises(ValidationError):
        entry.details = "rewritten"
