import pytest
from fastapi import HTTPException

from portal import models, submission
from portal.submission import SubmissionStep


def paper(**fields) -> models.ResearchPaper:
    return models.ResearchPaper(status=fields.pop("status", "draft"), completed_step=fields.pop("completed_step", 0))


def test_steps_complete_in_order():
    draft = paper()
    assert submission.complete_step(draft, SubmissionStep.BASIC_INFO) is True
    assert draft.completed_step == 1
    assert draft.step1_completed_at is not None

    with pytest.raises(HTTPException) as excinfo:
        submission.complete_step(draft, SubmissionStep.MANUSCRIPT)
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail == "Complete the authors step before the manuscript step."
    assert draft.completed_step == 1


def test_completing_a_finished_step_is_a_no_op():
    draft = paper(completed_step=3)
    assert submission.complete_step(draft, SubmissionStep.AUTHORS) is False
    assert draft.completed_step == 3


def test_ensure_step_ready():
    submission.ensure_step_ready(paper(completed_step=2), SubmissionStep.MANUSCRIPT)
    with pytest.raises(HTTPException):
        submission.ensure_step_ready(paper(completed_step=0), SubmissionStep.AUTHORS)


def test_completion_percentage_follows_steps():
    draft = paper(completed_step=3)
    assert draft.completion_percentage == 60
    progress = draft.submission_progress
    assert progress["step3_manuscript"]["completed"] is True
    assert progress["step4_review"]["completed"] is False


@pytest.mark.parametrize("old,new", [
    ("draft", "submitted"),
    ("submitted", "under_review"),
    ("under_review", "revision_required"),
    ("revision_required", "revised_submitted"),
    ("revised_submitted", "accepted"),
    ("accepted", "published"),
])
def test_allowed_transitions(old, new):
    p = paper(status=old)
    assert submission.transition_status(p, new) == old
    assert p.status == new


@pytest.mark.parametrize("old,new", [
    ("draft", "published"),
    ("submitted", "accepted"),
    ("rejected", "under_review"),
    ("published", "withdrawn"),
    ("withdrawn", "draft"),
])
def test_rejected_transitions(old, new):
    p = paper(status=old)
    with pytest.raises(HTTPException) as excinfo:
        submission.transition_status(p, new)
    assert excinfo.value.detail == f"Cannot change paper status from {old} to {new}"
    assert p.status == old


def test_transition_stamps_timeline():
    p = paper(status="draft")
    submission.transition_status(p, "submitted")
    assert p.submitted_at is not None
    assert p.submission_date == p.submitted_at

    p = paper(status="accepted")
    submission.transition_status(p, "published")
    assert p.published_at is not None


def test_anonymous_can_only_see_public_published_papers():
    p = paper(status="published")
    p.is_public = True
    assert submission.can_view(p, None)
    p.is_public = False
    assert not submission.can_view(p, None)
