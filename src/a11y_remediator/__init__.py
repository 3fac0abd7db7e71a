"""
a11y_remediator -- orchestration engine for automated accessibility remediation.

Scan a page, plan a fix per violation, apply it, verify it, and escalate
failures to a human reviewer. Workflow progress lives entirely in a flat
string attribute map so every step can run as a separate, stateless call.
"""

__version__ = "0.1.0"
