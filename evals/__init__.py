"""
Evaluation suite for the remediation engine.

Run all: pytest evals/ -v
Run one area: pytest evals/tasks/test_workflow_orchestrator.py -v
"""
