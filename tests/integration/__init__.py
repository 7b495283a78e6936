"""
Integration Tests Package

End-to-end tests of the store -> derivation -> validation -> repair flow.

TEST AXIOMS:
=============
1. Determinism: same events = same rows = same summary
2. Explicit failure: every inconsistency names both documents involved
3. Repair only ever rewrites lastState
"""
