"""Configuration constants.

Values here are format and toolchain facts, not user-configurable options.
For configurable values, see models.py.
"""

import re

# =============================================================================
# Snapshot naming
# =============================================================================
# LLVM_PROFILE_FILE placeholders. %Nm is the merge-pool form of %m.

SNAPSHOT_PLACEHOLDER_RE = re.compile(r"%(\d?m|[phtcb])")
"""Any placeholder the profile runtime expands when naming a snapshot."""

PROCESS_UNIQUE_PLACEHOLDERS = frozenset({"p", "m"})
"""Placeholders that keep concurrently running processes from sharing a file."""

PROFILE_FILE_ENV = "LLVM_PROFILE_FILE"
"""Environment variable read by the profile runtime at process exit."""

RUSTFLAGS_ENV = "RUSTFLAGS"
"""Environment variable carrying compiler flags to every rustc invocation."""

# =============================================================================
# File names and suffixes
# =============================================================================

TEXT_PROFILE_SUFFIX = ".proftext"
INDEXED_PROFILE_SUFFIX = ".profdata"

DEFAULT_INDEX_STEM = "merged"
"""Index file stem used when the snapshot pattern has no literal prefix."""

CONFIG_FILE_NAMES = ("covpipe.yaml", ".covpipe.yaml")
"""Workspace config files, first match wins."""

# =============================================================================
# Object file markers
# =============================================================================

DEBUG_SYMBOL_BUNDLE_SUFFIX = ".dSYM"
"""macOS debug-symbol bundle directories emitted next to test binaries."""

COVERAGE_MAPPING_MARKERS = (b"__llvm_covmap", b"__LLVM_COV", b".lcovmap")
"""Section names (ELF, Mach-O, COFF) present only in instrumented objects."""

# =============================================================================
# Exit codes
# =============================================================================

EXIT_INTERNAL_ERROR = 1
"""Exit status for failures not attributable to a pipeline stage."""
