"""
CPU-side executors and checks: SIMT simulator, sequential reference, host vectors.
"""
