import json

from formcraft.services.ai.context_assembler import (
    MAX_CONTEXT_CHARS,
    MAX_SUMMARY_CHARS,
    ContextAssembler,
)
from formcraft.services.memory.types import FormRecord


def _record(index: int, title: str, description: str = "", labels=None) -> FormRecord:
    fields = [{"id": f"f{i}", "type": "text", "label": label} for i, label in enumerate(labels or [])]
    return FormRecord(
        id=str(index),
        owner_id="alice",
        title=title,
        description=description,
        schema={"title": title, "fields": fields},
    )


def _large_record(index: int) -> FormRecord:
    # Serialized summary is well over 900 characters before truncation
    return _record(index, "T" * 150, "D" * 300, ["L" * 90 for _ in range(10)])


def test_summary_fields_are_truncated():
    record = _record(1, "T" * 150, "D" * 300, [f"Label {i}" for i in range(12)])

    summary = ContextAssembler().summarize(record)

    assert summary["purpose"] == "T" * 100
    assert summary["description"] == "D" * 200
    assert summary["fields"] == [f"Label {i}" for i in range(8)]


def test_serialized_summary_is_capped():
    assembler = ContextAssembler()

    assert len(json.dumps(assembler.summarize(_large_record(1)))) > 900
    assert len(assembler.serialize(_large_record(1))) == MAX_SUMMARY_CHARS


def test_fifth_oversized_summary_is_dropped_whole():
    records = [_large_record(i) for i in range(5)]

    context = ContextAssembler().build_context(records)

    assert len(context) < MAX_CONTEXT_CHARS
    assert context.count("[Form ") == 4
    assert "[Form 5]" not in context


def test_blocks_keep_ranked_order():
    records = [_record(1, "Job application"), _record(2, "Event signup")]

    context = ContextAssembler().build_context(records)

    assert context.index("Job application") < context.index("Event signup")
    assert context.startswith("[Form 1] ")


def test_no_records_gives_empty_context():
    assert ContextAssembler().build_context([]) == ""


def test_nothing_fits_gives_empty_context():
    assembler = ContextAssembler(max_context_chars=10)

    assert assembler.build_context([_record(1, "Job application")]) == ""


def test_missing_description_and_schema_fields():
    record = FormRecord(id="1", owner_id="alice", title="Poll", schema={})

    summary = ContextAssembler().summarize(record)

    assert summary == {"purpose": "Poll", "description": "", "fields": []}
