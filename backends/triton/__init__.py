"""
Triton device backend: one Triton program plays the single execution group.
"""
