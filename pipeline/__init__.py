"""
Host-side orchestration: backend interface, backend registry, run driver.
"""
