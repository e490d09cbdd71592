from __future__ import annotations

import json

import pytest

from nutrigen.models.history import GeneratedPrompt, PatientCase
from nutrigen.services.history_store import HistoryImportError, HistoryStore


@pytest.fixture
def store(tmp_path):
    return HistoryStore(tmp_path / "history.json")


def make_prompt(case_id: str) -> GeneratedPrompt:
    return GeneratedPrompt(
        case_id=case_id,
        prompt_text="Analiza el caso...",
        target_platform="claude",
        patient_summary="Ana, 34 años",
    )


def test_missing_file_reads_as_empty_history(store):
    history = store.get_history()
    assert history.cases == []
    assert history.prompts == []


def test_corrupt_file_reads_as_empty_history(store):
    store.path.write_text("{not json", encoding="utf-8")
    assert store.get_history().cases == []


def test_invalid_record_is_kept_aside_before_next_write(store):
    store.save_case(PatientCase(patient_name="Ana"))
    store.save_case(PatientCase(patient_name="Luis"))
    raw = json.loads(store.path.read_text(encoding="utf-8"))
    del raw["cases"][1]["patient_name"]
    broken = json.dumps(raw)
    store.path.write_text(broken, encoding="utf-8")

    store.save_case(PatientCase(patient_name="Nuevo"))

    backups = list(store.path.parent.glob("history.json.corrupt-*"))
    assert len(backups) == 1
    assert backups[0].read_text(encoding="utf-8") == broken
    assert [c.patient_name for c in store.get_history().cases] == ["Nuevo"]


def test_save_case_upserts_by_id(store):
    case = store.save_case(PatientCase(patient_name="Ana", age=34))
    created_at = case.created_at

    updated = PatientCase(id=case.id, patient_name="Ana María", age=35)
    store.save_case(updated)

    cases = store.get_history().cases
    assert len(cases) == 1
    assert cases[0].patient_name == "Ana María"
    assert cases[0].created_at == created_at


def test_delete_case_cascades_to_prompts(store):
    keep = store.save_case(PatientCase(patient_name="Luis"))
    drop = store.save_case(PatientCase(patient_name="Ana"))
    store.save_prompt(make_prompt(keep.id))
    store.save_prompt(make_prompt(drop.id))

    assert store.delete_case(drop.id)
    assert not store.delete_case(drop.id)

    history = store.get_history()
    assert [c.id for c in history.cases] == [keep.id]
    assert [p.case_id for p in history.prompts] == [keep.id]


def test_delete_prompt(store):
    case = store.save_case(PatientCase(patient_name="Ana"))
    prompt = store.save_prompt(make_prompt(case.id))

    assert store.get_prompts_for_case(case.id) == [prompt]
    assert store.delete_prompt(prompt.id)
    assert store.get_prompts_for_case(case.id) == []
    assert not store.delete_prompt(prompt.id)


def test_export_then_import_into_fresh_store(store, tmp_path):
    case = store.save_case(PatientCase(patient_name="Ana", genotype_id=3))
    store.save_prompt(make_prompt(case.id))

    other = HistoryStore(tmp_path / "other.json")
    imported = other.import_json(store.export_json())

    assert [c.id for c in imported.cases] == [case.id]
    assert other.get_case(case.id).genotype_id == 3


def test_imported_naive_timestamps_sort_with_new_records(store):
    store.import_json(
        json.dumps(
            {
                "cases": [
                    {
                        "id": "old",
                        "patient_name": "Ana",
                        "created_at": "2024-01-01T00:00:00",
                        "updated_at": "2024-01-01T00:00:00",
                    }
                ],
                "prompts": [
                    {
                        "case_id": "old",
                        "created_at": "2024-01-01T00:00:00",
                        "prompt_text": "Analiza el caso...",
                        "target_platform": "claude",
                        "patient_summary": "Ana",
                    }
                ],
                "last_updated": "2024-01-01T00:00:00",
            }
        )
    )
    new = store.save_case(PatientCase(patient_name="Luis"))
    store.save_prompt(make_prompt("old"))

    assert [c.id for c in store.list_cases()] == [new.id, "old"]
    assert len(store.get_prompts_for_case("old")) == 2
    assert store.get_case("old").created_at.tzinfo is not None


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        json.dumps({"cases": []}),
        json.dumps({"cases": {}, "prompts": []}),
        json.dumps([]),
        json.dumps({"cases": [{"age": 3}], "prompts": []}),
    ],
)
def test_import_rejects_malformed_history(store, raw):
    with pytest.raises(HistoryImportError):
        store.import_json(raw)


def test_clear(store):
    store.save_case(PatientCase(patient_name="Ana"))
    store.clear()
    assert store.get_history().cases == []
