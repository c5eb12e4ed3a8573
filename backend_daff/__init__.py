"""
Backend DAFF — automated digital-evidence classification engine.

Takes files, free text, network-flow summaries, transactions and media,
extracts indicators per input kind and assigns each a ternary flag
(+ safe, - malicious, = needs investigation) with a confidence score and a
human-readable rationale. Runs unattended: single items, batches, or a
cancellable real-time monitor, escalating high-confidence ambiguous findings.
"""

__version__ = "0.1.0"
