import json

import pytest

from docflow.pipeline.envelope import (
    AsyncOperationHandle,
    CaseInsensitiveDict,
    FailureInfo,
    WorkflowEnvelope,
    normalize_steps,
)
from docflow.pipeline.errors import EnvelopeParseError


# ─── normalize_steps ───────────────────────────────────

def test_normalize_steps_trims_lowercases_and_dedupes():
    assert normalize_steps(" Translation, PII ,translation") == ("translation", "pii")


def test_normalize_steps_drops_blank_entries():
    assert normalize_steps("a,, ,b,") == ("a", "b")
    assert normalize_steps("") == ()
    assert normalize_steps(None) == ()


def test_normalize_steps_accepts_iterables():
    assert normalize_steps(["PdfImages", "imageanalysis", "PDFIMAGES"]) == ("pdfimages", "imageanalysis")


# ─── Construction ──────────────────────────────────────

def test_start_splits_first_step_from_remaining():
    env = WorkflowEnvelope.start("ref-1", "input/claim1.txt", "translation,pii")
    assert env.current_step == "translation"
    assert env.remaining_steps == ("pii",)
    assert env.failure is None


def test_start_rejects_empty_step_list():
    with pytest.raises(ValueError):
        WorkflowEnvelope.start("ref-1", "input/a.txt", " , ")


def test_reference_id_is_required():
    with pytest.raises(ValueError):
        WorkflowEnvelope(reference_id="  ", blob_path="input/a", current_step="pii")


def test_remaining_steps_cannot_repeat_current_step():
    with pytest.raises(ValueError):
        WorkflowEnvelope("ref", "input/a", "pii", remaining_steps=("pii",))


def test_remaining_steps_is_a_tuple():
    env = WorkflowEnvelope("ref", "input/a", "translation", remaining_steps=["pii"])
    assert isinstance(env.remaining_steps, tuple)


# ─── Metadata ──────────────────────────────────────────

def test_metadata_lookup_is_case_insensitive():
    env = WorkflowEnvelope.start("ref", "input/a", "pii", {"Reference_ID": "ref", "Document-Model": "m"})
    assert env.metadata["reference_id"] == "ref"
    assert "DOCUMENT-MODEL" in env.metadata


def test_case_insensitive_dict_keeps_latest_spelling():
    data = CaseInsensitiveDict({"Key": "1"})
    data["KEY"] = "2"
    assert data.to_dict() == {"KEY": "2"}
    assert data == {"key": "2"}


def test_record_output_sets_step_and_last_output():
    env = WorkflowEnvelope.start("ref", "input/a", "translation,pii")
    env.record_output("translation", "output/translation/a_translated.json")
    assert env.output_of("translation") == "output/translation/a_translated.json"
    assert env.metadata["last-output"] == "output/translation/a_translated.json"


# ─── Serialization ─────────────────────────────────────

def test_round_trip_preserves_fields():
    env = WorkflowEnvelope.start("ref-9", "input/x.pdf", "pdfimages,imageanalysis", {"Reference_Id": "ref-9"})
    env.failure = FailureInfo(step="pdfimages", error="boom")

    parsed = WorkflowEnvelope.from_json(env.to_json())

    assert parsed.reference_id == env.reference_id
    assert parsed.blob_path == env.blob_path
    assert parsed.current_step == env.current_step
    assert parsed.remaining_steps == env.remaining_steps
    assert parsed.metadata == {"reference_id": "ref-9"}
    assert parsed.failure == env.failure


def test_serialized_shape():
    env = WorkflowEnvelope.start("ref", "input/a.txt", "translation,pii")
    data = json.loads(env.to_json())
    assert data == {
        "reference_id": "ref",
        "blob_path": "input/a.txt",
        "current_step": "translation",
        "remaining_steps": ["pii"],
        "metadata": {},
        "failure": None,
    }


@pytest.mark.parametrize("payload", [
    "not json",
    "[]",
    json.dumps({"blob_path": "input/a", "current_step": "pii"}),
    json.dumps({"reference_id": "", "blob_path": "input/a", "current_step": "pii"}),
    json.dumps({"reference_id": None, "blob_path": "input/a", "current_step": "pii"}),
    json.dumps({"reference_id": "r", "blob_path": None, "current_step": "pii"}),
    json.dumps({"reference_id": "r", "current_step": "pii"}),
    json.dumps({"reference_id": "r", "blob_path": "input/a", "current_step": 7}),
    json.dumps({"reference_id": "r", "blob_path": "input/a", "current_step": "pii", "remaining_steps": "x"}),
])
def test_from_json_rejects_malformed_payloads(payload):
    with pytest.raises(EnvelopeParseError):
        WorkflowEnvelope.from_json(payload)


def test_parse_error_carries_reference_when_known():
    payload = json.dumps({"reference_id": "ref-7", "blob_path": "input/a"})
    with pytest.raises(EnvelopeParseError) as info:
        WorkflowEnvelope.from_json(payload)
    assert info.value.reference_id == "ref-7"


# ─── Fan-out ───────────────────────────────────────────

def test_spawn_starts_at_next_step_with_cloned_metadata():
    parent = WorkflowEnvelope.start("ref", "input/doc.pdf", "pdfimages,imageanalysis,pii", {"reference_id": "ref"})
    child = parent.spawn("output/pdfimages/doc/page1-image0.png", {"source-page": 1})

    assert child.current_step == "imageanalysis"
    assert child.remaining_steps == ("pii",)
    assert child.blob_path == "output/pdfimages/doc/page1-image0.png"
    assert child.metadata["source-page"] == "1"

    child.metadata["extra"] = "x"
    assert "extra" not in parent.metadata
    assert "source-page" not in parent.metadata


def test_spawn_requires_remaining_steps():
    env = WorkflowEnvelope.start("ref", "input/doc.pdf", "pdfimages")
    with pytest.raises(ValueError):
        env.spawn("output/x.png")


# ─── AsyncOperationHandle ──────────────────────────────

def test_operation_handle_round_trip():
    env = WorkflowEnvelope.start("ref", "input/scan.pdf", "documentanalysis,pii")
    handle = AsyncOperationHandle("documentModels/m/analyzeResults/1", "input/scan.pdf", env)

    parsed = AsyncOperationHandle.from_json(handle.to_json())

    assert parsed.operation_id == handle.operation_id
    assert parsed.target_blob == "input/scan.pdf"
    assert parsed.envelope.remaining_steps == ("pii",)


@pytest.mark.parametrize("missing", ["operation_id", "target_blob", "envelope"])
def test_operation_handle_requires_all_fields(missing):
    env = WorkflowEnvelope.start("ref", "input/scan.pdf", "documentanalysis")
    data = json.loads(AsyncOperationHandle("op", "input/scan.pdf", env).to_json())
    del data[missing]
    with pytest.raises(EnvelopeParseError):
        AsyncOperationHandle.from_json(json.dumps(data))
