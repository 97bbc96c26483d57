"""
Simulated device backend (CPU, numpy + SIMT executor). Always available.
"""
