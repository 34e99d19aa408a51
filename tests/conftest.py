"""
Pytest configuration and shared fixtures.

This module contains shared test fixtures and configuration
for the kpower test suite.
"""

import logging
import os
import re
import shutil
import stat
import sys
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Configure logging for tests
logging.basicConfig(level=logging.DEBUG)


REPORT_TEMPLATE = """IQ-TREE 2.3.6 built Aug  4 2024

Input file name: {alignment}
Type of analysis: tree reconstruction
Random seed number: 1

REFERENCES
----------

MAXIMUM LIKELIHOOD TREE
-----------------------

Log-likelihood of the tree: {lnl} (s.e. 45.6210)
Unconstrained log-likelihood (without tree): -2843.5551
Number of free parameters (#branches + #model parameters): {df}
Akaike information criterion (AIC) score: {aic}
Corrected Akaike information criterion (AICc) score: {aicc}
Bayesian information criterion (BIC) score: {bic}
Total tree length (sum of branch lengths): 0.7451
Sum of internal branch lengths: 0.2280 (30.5959% of tree length)
"""

ALISIM_SECTION = """
ALISIM COMMAND
--------------
To simulate an alignment of the same length as the original alignment, using the tree and model parameters estimated from this analysis, you can use the following command:

--alisim simulated_MSA -t {treefile} -m "{model}{{0.6,0.4}}" --length 1998

To mimic the alignment used to produce this analysis, i.e. simulate an alignment of the same length as the original alignment, using the tree and model parameters estimated from this analysis *and* copying the same gap positions as the original alignment, you can use the following command:

iqtree -s {alignment} --alisim mimicked_MSA
"""


def make_report_text(k: int = 1, bic: Optional[float] = 1000.0, alignment: str = "aln.fa",
                     treefile: str = "aln.treefile", model: str = "GTR+R2",
                     alisim: bool = True) -> str:
    """Report text with statistics derived from the BIC value."""
    def fmt(value):
        return "" if value is None else f"{value:.4f}"

    base = 1000.0 if bic is None else bic
    text = REPORT_TEMPLATE.format(
        alignment=alignment,
        lnl=fmt(-base / 2),
        df=10 + 2 * k,
        aic=fmt(base - 20.0),
        aicc=fmt(base - 15.0),
        bic=fmt(bic),
    )
    if bic is None:
        text = "\n".join(line for line in text.splitlines()
                         if not line.startswith("Bayesian information criterion"))
    if alisim:
        text += ALISIM_SECTION.format(treefile=treefile, model=model, alignment=alignment)
    return text


def model_k(model: str) -> int:
    match = re.search(r'\+[RH](\d+)$', model)
    return int(match.group(1)) if match else 1


class ReportWritingRunner:
    """
    Stand-in for ExternalToolRunner that writes IQ-TREE style outputs.

    BIC values come from `bic_by_k`; K values mapped to None get a report
    without a BIC line. Alignments whose path contains a string in
    `fail_on` raise ExternalToolFailure.
    """

    def __init__(self, executable: str = "iqtree2", debug: bool = False,
                 bic_by_k: Optional[Dict[int, Optional[float]]] = None,
                 alisim: bool = True, fail_on: Optional[List[str]] = None,
                 sim_files: int = None):
        self.executable = executable
        self.debug = debug
        self.bic_by_k = bic_by_k or {1: 1030.0, 2: 1000.0, 3: 1010.0}
        self.alisim = alisim
        self.fail_on = fail_on or []
        self.sim_files = sim_files
        self.calls: List[List[str]] = []

    @staticmethod
    def _value(args, flag):
        return args[args.index(flag) + 1] if flag in args else None

    def invoke(self, args, timeout=None, cwd=None):
        from kpower.exceptions import ExternalToolFailure

        args = [str(a) for a in args]
        self.calls.append(args)

        if "--alisim" in args:
            prefix = Path(self._value(args, "--alisim"))
            count = self.sim_files
            if count is None:
                count = int(self._value(args, "--num-alignments") or 1)
            for i in range(1, count + 1):
                Path(f"{prefix}_{i}.fa").write_text(">t1\nACGT\n>t2\nACGA\n")
            return None

        alignment = self._value(args, "-s")
        if any(token in alignment for token in self.fail_on):
            raise ExternalToolFailure("iqtree2 failed with exit code 2:\nERROR: bad alignment",
                                      exit_status=2, stderr_excerpt="ERROR: bad alignment",
                                      tool_name=self.executable)

        prefix = self._value(args, "--prefix")
        model = self._value(args, "-m")
        k = model_k(model)
        Path(f"{prefix}.iqtree").write_text(make_report_text(
            k=k, bic=self.bic_by_k.get(k), alignment=alignment,
            treefile=f"{prefix}.treefile", model=model, alisim=self.alisim
        ))
        Path(f"{prefix}.treefile").write_text("(t1:0.1,t2:0.1,t3:0.2);\n")
        Path(f"{prefix}.log").write_text("fake log\n")
        return None


FAKE_IQTREE_SCRIPT = r'''#!{python}
import os
import re
import sys
from pathlib import Path

args = sys.argv[1:]


def value(flag, default=None):
    return args[args.index(flag) + 1] if flag in args else default


if "--version" in args:
    print("IQ-TREE multicore version 2.3.6 for Linux 64-bit built Aug  4 2024")
    sys.exit(0)

if "--alisim" in args:
    prefix = value("--alisim")
    count = int(value("--num-alignments", "1"))
    length = int(value("--length", "8"))
    pattern = [int(b) for b in os.environ.get("FAKE_SIM_BEST", "2").split(",")]
    for i in range(1, count + 1):
        best = pattern[(i - 1) % len(pattern)]
        with open(f"{{prefix}}_{{i}}.fa", "w") as f:
            f.write(f">t1 best={{best}}\n" + "A" * length + "\n>t2\n" + "C" * length + "\n")
    sys.exit(0)

alignment = value("-s")
if os.environ.get("FAKE_FAIL_ON") and os.environ["FAKE_FAIL_ON"] in alignment:
    sys.stderr.write("ERROR: Alignment could not be read\n")
    sys.exit(2)

prefix = value("--prefix")
model = value("-m")
match = re.search(r"\+[RH](\d+)$", model)
k = int(match.group(1)) if match else 1
found = re.search(r"best=(\d+)", Path(alignment).read_text())
best = int(found.group(1)) if found else 2
bic = 1000.0 + 10.0 * abs(k - best)

report = f"""IQ-TREE multicore version 2.3.6

Input file name: {{alignment}}

Log-likelihood of the tree: {{-bic / 2:.4f}} (s.e. 10.0)
Number of free parameters (#branches + #model parameters): {{10 + 2 * k}}
Akaike information criterion (AIC) score: {{bic - 20:.4f}}
Corrected Akaike information criterion (AICc) score: {{bic - 15:.4f}}
Bayesian information criterion (BIC) score: {{bic:.4f}}

ALISIM COMMAND
--------------
To simulate an alignment of the same length as the original alignment, use:

--alisim simulated_MSA -t {{prefix}}.treefile -m "{{model}}" --length 8

To mimic the alignment used to produce this analysis, use:

iqtree -s {{alignment}} --alisim mimicked_MSA
"""
Path(f"{{prefix}}.iqtree").write_text(report)
Path(f"{{prefix}}.treefile").write_text("(t1:0.1,t2:0.1);\n")
Path(f"{{prefix}}.log").write_text("done\n")
'''


@pytest.fixture
def temp_dir():
    """Create a temporary directory for each test."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def sample_sequences():
    """Provide sample DNA sequences for testing."""
    return {
        'seq1': 'ATCGATCGATCGATCG',
        'seq2': 'ATCGATCGATCGATCG',
        'seq3': 'ATCGATCGATCGATCC',
        'seq4': 'ATCGATCGATCGATAA',
        'seq5': 'ATCG--CGATCGTTTT',
        'seq6': 'ATCGATCGATCGAAAA'
    }


@pytest.fixture
def sample_fasta_alignment(sample_sequences):
    """Create a sample FASTA alignment."""
    content = ""
    for seq_name, sequence in sample_sequences.items():
        content += f">{seq_name}\n{sequence}\n"
    return content


@pytest.fixture
def alignment_file(temp_dir, sample_fasta_alignment):
    """Empirical FASTA alignment on disk (16 sites)."""
    return create_test_file(temp_dir, "empirical.fa", sample_fasta_alignment)


@pytest.fixture
def sample_report_text():
    """Report with every statistic and an ALISIM COMMAND section."""
    return make_report_text(k=2, bic=1234.5678, alignment="example.phy",
                            treefile="example.phy.treefile", model="GTR+R2")


@pytest.fixture
def report_writing_runner():
    """Runner stub writing reports with K=2 minimising BIC."""
    return ReportWritingRunner()


@pytest.fixture
def fake_iqtree(temp_dir):
    """Executable script mimicking the IQ-TREE command line."""
    script = temp_dir / "bin" / "iqtree2"
    script.parent.mkdir()
    script.write_text(FAKE_IQTREE_SCRIPT.format(python=sys.executable))
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def caplog_debug(caplog):
    """Capture debug logs during tests."""
    with caplog.at_level(logging.DEBUG, logger="kpower"):
        yield caplog


def create_test_file(temp_dir: Path, filename: str, content: str) -> Path:
    """Helper function to create test files."""
    file_path = temp_dir / filename
    file_path.write_text(content)
    return file_path


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
    config.addinivalue_line(
        "markers", "external: mark test as requiring external tools"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test names."""
    for item in items:
        if "test_" in item.nodeid and "integration" not in item.nodeid:
            item.add_marker(pytest.mark.unit)

        if "integration" in item.nodeid or "fake_iqtree" in getattr(item, "fixturenames", ()):
            item.add_marker(pytest.mark.integration)

        if any(keyword in item.name.lower() for keyword in ['large', 'hundred', 'pool']):
            item.add_marker(pytest.mark.slow)

        if any(keyword in item.name.lower() for keyword in ['real_iqtree', 'external']):
            item.add_marker(pytest.mark.external)


class TestHelpers:
    """Helper class with utility methods for tests."""

    @staticmethod
    def create_alignment_file(temp_dir: Path, sequences: Dict[str, str] = None,
                              filename: str = "test_alignment.fa", header_note: str = "") -> Path:
        """Create a FASTA alignment file; header_note is appended to the first header."""
        if sequences is None:
            sequences = {
                'seq1': 'ATCGATCG',
                'seq2': 'ATCGATCG',
                'seq3': 'ATCGATCC'
            }
        content = ""
        for i, (name, seq) in enumerate(sequences.items()):
            note = f" {header_note}" if header_note and i == 0 else ""
            content += f">{name}{note}\n{seq}\n"
        file_path = temp_dir / filename
        file_path.write_text(content)
        return file_path

    @staticmethod
    def create_report(path: Path, **kwargs) -> Path:
        path.write_text(make_report_text(**kwargs))
        return path

    @staticmethod
    def create_tree_file(temp_dir: Path, tree_string: str = None) -> Path:
        """Create a tree file."""
        if tree_string is None:
            tree_string = "(seq1:0.1,seq2:0.1,seq3:0.15);"

        tree_file = temp_dir / "test_tree.tre"
        tree_file.write_text(tree_string)
        return tree_file


@pytest.fixture
def test_helpers():
    """Provide test helper utilities."""
    return TestHelpers


@pytest.fixture
def clean_fake_env(monkeypatch):
    """Remove environment switches of the fake IQ-TREE script."""
    for name in ("FAKE_SIM_BEST", "FAKE_FAIL_ON"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
