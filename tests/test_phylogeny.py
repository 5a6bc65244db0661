from urllib.parse import parse_qs

import pytest

from phylodash import config
from phylodash.services.errors import SubmissionError, ValidationError
from phylodash.services.job_state import PipelineStage, PipelineState, decode_state, encode_state
from phylodash.services.phylogeny import PhyloMethod, build_fasta, normalize_method

from conftest import run

CLUSTAL = config.CLUSTALO_URL
SIMPLE = config.SIMPLE_PHYLOGENY_URL
SEQS = ["MKTAYIAKQRQISFVKSHFSRQ", "MKVAYIAKQRQISFVKAHFSRQ", "MKTAYLAKQRQISFVKSHFSRQ"]
ALIGNMENT = ">seq1\nMKTAYIAKQRQISFVKSHFSRQ\n>seq2\nMKVAYIAKQRQISFVKAHFSRQ\n>seq3\nMKTAYLAKQRQISFVKSHFSRQ\n"
TREE = "(\nseq1:0.02,\nseq2:0.05,\nseq3:0.03);\n"


def _alignment_token(clustal_id="clustalo-R1-p1m"):
    return encode_state(PipelineState(stage=PipelineStage.alignment, clustal_job_id=clustal_id))


def _tree_token(clustal_id="clustalo-R1-p1m", simple_id="simple_phylogeny-R2-p2m"):
    return encode_state(PipelineState(stage=PipelineStage.tree, clustal_job_id=clustal_id, simple_job_id=simple_id))


# ---------- helpers ----------

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("clustalo", PhyloMethod.clustalo),
        ("ClustalO", PhyloMethod.clustalo),
        ("simple_phylogeny", PhyloMethod.simple_phylogeny),
        (None, PhyloMethod.simple_phylogeny),
        ("upgma", PhyloMethod.simple_phylogeny),
        (42, PhyloMethod.simple_phylogeny),
    ],
)
def test_normalize_method(raw, expected):
    assert normalize_method(raw) is expected


def test_build_fasta_numbers_and_trims():
    assert build_fasta([" MKT \n", "MKV"]) == ">seq1\nMKT\n>seq2\nMKV"


# ---------- submission ----------

def test_submit_default_method_returns_alignment_token(upstream, orchestrator):
    upstream.text("POST", f"{CLUSTAL}/run", "clustalo-R1-p1m")
    env = run(orchestrator.submit(SEQS))

    state = decode_state(env.job_id)
    assert state is not None
    assert state.stage is PipelineStage.alignment
    assert state.clustal_job_id == "clustalo-R1-p1m"
    assert env.service == "simple_phylogeny"
    assert env.stage == "alignment"
    assert env.external_url == f"{CLUSTAL}/result/clustalo-R1-p1m/fa"
    assert env.alignment_job_id == "clustalo-R1-p1m"

    form = parse_qs(upstream.calls[0].content.decode())
    assert form["sequence"][0].startswith(">seq1\nMKTAYIAKQRQISFVKSHFSRQ\n>seq2\n")
    assert form["email"] == [config.CONTACT_EMAIL]


def test_submit_clustalo_never_produces_composite_token(upstream, orchestrator):
    upstream.text("POST", f"{CLUSTAL}/run", "clustalo-R1-p1m")
    env = run(orchestrator.submit(SEQS, "clustalo"))
    assert env.job_id == "clustalo-R1-p1m"
    assert decode_state(env.job_id) is None
    assert env.stage == "tree"
    assert env.external_url == f"{CLUSTAL}/result/clustalo-R1-p1m/phylotree"


@pytest.mark.parametrize("sequences", [None, [], ["MKT"], "MKT,MKV", ["MKT", "   "]])
def test_submit_rejects_bad_input_before_any_call(upstream, orchestrator, sequences):
    with pytest.raises(ValidationError):
        run(orchestrator.submit(sequences))
    assert upstream.calls == []


def test_submit_surfaces_upstream_rejection(upstream, orchestrator):
    upstream.text("POST", f"{CLUSTAL}/run", "email is required", status=400)
    with pytest.raises(SubmissionError, match="email is required"):
        run(orchestrator.submit(SEQS))


# ---------- alignment stage ----------

def test_alignment_running_echoes_token(upstream, orchestrator):
    token = _alignment_token()
    upstream.text("GET", f"{CLUSTAL}/status/clustalo-R1-p1m", "RUNNING")
    env = run(orchestrator.poll(token))
    assert env.status == "RUNNING"
    assert env.job_id == token
    assert env.stage == "alignment"
    assert env.external_service == "clustalo"


def test_alignment_pending_404_is_running(upstream, orchestrator):
    token = _alignment_token()
    upstream.text("GET", f"{CLUSTAL}/status/clustalo-R1-p1m", "", status=404)
    env = run(orchestrator.poll(token))
    assert env.status == "RUNNING"
    assert env.job_id == token


def test_alignment_finished_advances_to_tree_stage(upstream, orchestrator):
    upstream.text("GET", f"{CLUSTAL}/status/clustalo-R1-p1m", "FINISHED")
    upstream.text("GET", f"{CLUSTAL}/result/clustalo-R1-p1m/fa", ALIGNMENT)
    upstream.text("POST", f"{SIMPLE}/run", "simple_phylogeny-R2-p2m")

    env = run(orchestrator.poll(_alignment_token()))

    assert env.status == "RUNNING"
    assert env.result is None
    state = decode_state(env.job_id)
    assert state.stage is PipelineStage.tree
    assert state.clustal_job_id == "clustalo-R1-p1m"
    assert state.simple_job_id == "simple_phylogeny-R2-p2m"
    assert env.alignment_job_id == "clustalo-R1-p1m"
    assert env.tree_job_id == "simple_phylogeny-R2-p2m"
    assert env.external_url == f"{SIMPLE}/result/simple_phylogeny-R2-p2m/tree"

    form = parse_qs(upstream.calls[-1].content.decode())
    assert form["sequence"] == [ALIGNMENT]
    assert form["tree"] == ["phylip"]
    assert form["clustering"] == ["Neighbour-joining"]
    assert form["kimura"] == ["false"]
    assert form["email"] == [config.CONTACT_EMAIL]


def test_alignment_failure_terminates(upstream, orchestrator):
    upstream.text("GET", f"{CLUSTAL}/status/clustalo-R1-p1m", "ERROR")
    env = run(orchestrator.poll(_alignment_token()))
    assert env.status == "FAILURE"
    assert "Clustal Omega alignment failed" in env.message
    assert env.job_id is None


# ---------- tree stage ----------

def test_tree_finished_returns_result(upstream, orchestrator):
    upstream.text("GET", f"{SIMPLE}/status/simple_phylogeny-R2-p2m", "FINISHED")
    upstream.text("GET", f"{SIMPLE}/result/simple_phylogeny-R2-p2m/tree", TREE)
    env = run(orchestrator.poll(_tree_token()))
    assert env.status == "FINISHED"
    assert env.result == TREE
    assert env.alignment_job_id == "clustalo-R1-p1m"
    assert env.tree_job_id == "simple_phylogeny-R2-p2m"


def test_tree_running_echoes_token(upstream, orchestrator):
    token = _tree_token()
    upstream.text("GET", f"{SIMPLE}/status/simple_phylogeny-R2-p2m", "QUEUED")
    env = run(orchestrator.poll(token))
    assert env.status == "RUNNING"
    assert env.job_id == token
    assert env.stage == "tree"


def test_tree_failure(upstream, orchestrator):
    upstream.text("GET", f"{SIMPLE}/status/simple_phylogeny-R2-p2m", "FAILURE")
    env = run(orchestrator.poll(_tree_token()))
    assert env.status == "FAILURE"
    assert "Simple Phylogeny job failed" in env.message


def test_tree_token_missing_simple_job_id_makes_no_call(upstream, orchestrator):
    token = encode_state(PipelineState(stage=PipelineStage.tree, clustal_job_id="clustalo-R1-p1m"))
    env = run(orchestrator.poll(token))
    assert env.status == "FAILURE"
    assert "missing Simple Phylogeny job identifier" in env.message
    assert upstream.calls == []


# ---------- direct clustalo tokens ----------

def test_clustal_direct_finished_fetches_phylotree(upstream, orchestrator):
    upstream.text("GET", f"{CLUSTAL}/status/clustalo-R9-p1m", "FINISHED")
    upstream.text("GET", f"{CLUSTAL}/result/clustalo-R9-p1m/phylotree", TREE)
    env = run(orchestrator.poll("clustalo-R9-p1m"))
    assert env.status == "FINISHED"
    assert env.service == "clustalo"
    assert env.result == TREE
    assert env.tree_job_id == env.alignment_job_id == "clustalo-R9-p1m"


def test_clustal_direct_running(upstream, orchestrator):
    upstream.text("GET", f"{CLUSTAL}/status/clustalo-R9-p1m", "RUNNING")
    env = run(orchestrator.poll("clustalo-R9-p1m"))
    assert env.status == "RUNNING"
    assert env.job_id == "clustalo-R9-p1m"


def test_clustal_direct_failure(upstream, orchestrator):
    upstream.text("GET", f"{CLUSTAL}/status/clustalo-R9-p1m", "NOT_FOUND")
    env = run(orchestrator.poll("clustalo-R9-p1m"))
    assert env.status == "FAILURE"
    assert "Clustal Omega job failed" in env.message
