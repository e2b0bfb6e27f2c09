from docflow.pipeline.envelope import FailureInfo, WorkflowEnvelope


def test_advance_walks_every_step(controller, transport):
    env = WorkflowEnvelope.start("ref", "input/a.pdf", "pdfimages,imageanalysis,imagedescribe,pii")

    assert controller.advance(env) is True
    assert controller.advance(env) is True
    assert controller.advance(env) is True

    assert env.current_step == "pii"
    assert env.remaining_steps == ()
    assert [m.queue for m in transport.dispatched] == ["imageanalysis-in", "imagedescribe-in", "pii-in"]


def test_advance_on_last_step_ends_workflow(controller, transport):
    env = WorkflowEnvelope.start("ref", "input/a.txt", "pii")

    assert controller.advance(env) is False
    assert env.current_step == "pii"
    assert transport.sent == []


def test_advance_refuses_failed_envelope(controller, transport):
    env = WorkflowEnvelope.start("ref", "input/a.txt", "translation,pii")
    env.failure = FailureInfo(step="translation", error="x")

    assert controller.advance(env) is False
    assert env.current_step == "translation"
    assert transport.sent == []


def test_fail_stamps_failure_and_alerts(controller, transport):
    env = WorkflowEnvelope.start("ref-3", "input/a.txt", "translation,pii")

    controller.fail(env, "translation", "CapabilityError: translator returned 500")

    assert env.is_failed
    assert env.failure.step == "translation"
    assert env.failure.timestamp.tzinfo is not None
    assert transport.dispatched == []
    [alert] = transport.alerts
    assert alert == {
        "reference_id": "ref-3",
        "blob_path": "input/a.txt",
        "failed_step": "translation",
        "error": "CapabilityError: translator returned 500",
        "timestamp": alert["timestamp"],
    }
