"""
Python renditions of the CUDA kernels, run by `verify.simt`.
"""
