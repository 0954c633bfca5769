"""
Unit tests for the per-item pipeline state machine and result shapes
"""

import pytest

from core.exceptions import PipelineStateError
from ingestion.pipeline import (
    ALLOWED_TRANSITIONS,
    PipelineResult,
    PipelineRun,
    PipelineState,
    ResultStatus,
)
from models.base import SourceName


def test_happy_path_transitions():
    run = PipelineRun(SourceName.FACEBOOK, "1")
    for state in (
        PipelineState.CURATING,
        PipelineState.CURATED,
        PipelineState.CANONICALIZING,
        PipelineState.CANONICALIZED,
        PipelineState.ENRICHING,
        PipelineState.COMPLETE,
    ):
        run.transition(state)

    assert run.state == PipelineState.COMPLETE
    assert run.history[0] == PipelineState.CAPTURED
    assert len(run.history) == 7


@pytest.mark.parametrize("stage", [PipelineState.CURATING, PipelineState.CANONICALIZING])
def test_failure_allowed_from_transform_stages(stage):
    assert PipelineState.FAILED in ALLOWED_TRANSITIONS[stage]


def test_enrichment_cannot_fail_the_item():
    assert PipelineState.FAILED not in ALLOWED_TRANSITIONS[PipelineState.ENRICHING]


def test_illegal_transition_raises():
    run = PipelineRun(SourceName.CENTRIS, "9")
    with pytest.raises(PipelineStateError):
        run.transition(PipelineState.COMPLETE)


def test_success_result_shape():
    result = PipelineResult(
        status=ResultStatus.SUCCESS,
        source=SourceName.FACEBOOK,
        source_item_id="1",
        curated={"id": 3},
        canonical={"id": 7},
        warnings=["Could not geocode address"],
    )

    body = result.to_dict()
    assert body["status"] == "success"
    assert body["canonical"] == {"id": 7}
    assert body["warnings"] == ["Could not geocode address"]
    assert result.canonical_id == 7
    assert result.curated_id == 3


def test_failure_result_shape():
    result = PipelineResult(
        status=ResultStatus.FAILED,
        source=SourceName.FACEBOOK,
        source_item_id="1",
        error_kind="validation_error",
        error_details=["Missing required field: title"],
    )

    body = result.to_dict()
    assert body == {
        "status": "failed",
        "kind": "validation_error",
        "details": ["Missing required field: title"],
        "warnings": [],
    }
