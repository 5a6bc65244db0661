import base64
import json

import pytest

from phylodash.services.job_state import (
    PipelineStage,
    PipelineState,
    TokenKind,
    decode_state,
    encode_state,
    parse_token,
)


def _raw_token(obj) -> str:
    return base64.urlsafe_b64encode(json.dumps(obj).encode()).decode().rstrip("=")


@pytest.mark.parametrize(
    "state",
    [
        PipelineState(stage=PipelineStage.alignment, clustal_job_id="clustalo-R20241018-101010-0001-1234-p1m"),
        PipelineState(stage=PipelineStage.tree, clustal_job_id="c-1", simple_job_id="simple_phylogeny-R1-p2m"),
    ],
)
def test_round_trip(state):
    token = encode_state(state)
    assert decode_state(token) == state


def test_token_is_url_safe_and_tagged():
    token = encode_state(PipelineState(stage=PipelineStage.alignment, clustal_job_id="abc"))
    assert "=" not in token and "+" not in token and "/" not in token
    payload = json.loads(base64.urlsafe_b64decode(token + "=" * (-len(token) % 4)))
    assert payload == {"version": 1, "method": "simple_phylogeny", "stage": "alignment", "clustalJobId": "abc"}


@pytest.mark.parametrize(
    "token",
    [
        "clustalo-R20241018-101010-0001-12345678-p1m",
        "ncbiblast-R20241018-000000-0000-1-p2m",
        "abc123",
        "",
        "!!!not base64!!!",
        "ünïcødé",
        _raw_token([1, 2, 3]),
        _raw_token({"version": 2, "method": "simple_phylogeny", "stage": "alignment", "clustalJobId": "x"}),
        _raw_token({"version": 1, "method": "clustalo", "stage": "alignment", "clustalJobId": "x"}),
        _raw_token({"version": 1, "method": "simple_phylogeny", "stage": "bogus", "clustalJobId": "x"}),
        _raw_token({"version": 1, "method": "simple_phylogeny", "stage": "alignment", "clustalJobId": "x", "simpleJobId": "s"}),
    ],
)
def test_decode_fails_soft(token):
    assert decode_state(token) is None
    assert parse_token(token).kind is TokenKind.external


def test_tree_stage_without_simple_job_id_still_decodes():
    token = _raw_token({"version": 1, "method": "simple_phylogeny", "stage": "tree", "clustalJobId": "c-1"})
    state = decode_state(token)
    assert state is not None
    assert state.stage is PipelineStage.tree
    assert state.simple_job_id is None


def test_parse_token_pipeline_kind():
    state = PipelineState(stage=PipelineStage.alignment, clustal_job_id="c-1")
    token = encode_state(state)
    parsed = parse_token(token)
    assert parsed.kind is TokenKind.pipeline
    assert parsed.raw == token
    assert parsed.state == state


def test_alignment_state_rejects_tree_job_id():
    with pytest.raises(ValueError):
        PipelineState(stage=PipelineStage.alignment, clustal_job_id="c-1", simple_job_id="s-1")
